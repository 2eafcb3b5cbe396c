from __future__ import annotations
from typing import Iterable, List, Optional, Sequence, Tuple

from svg_path import CUBIC, Subpath

Point = Tuple[float, float]
Bounds = Tuple[float, float, float, float]

# a quarter of an output unit; at natural scale that is a quarter pixel
FLATNESS_TOLERANCE = 0.25
MAX_SUBDIVISION_DEPTH = 10
# points closer than this are the same point
DEGENERATE_EPSILON = 1e-9

def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) * 0.5, (a[1] + b[1]) * 0.5)

def cubic_flatness(p0: Point, p1: Point, p2: Point, p3: Point) -> float:
    """Upper bound of 16 * (max distance from the curve to its chord)^2."""
    ux = 3 * p1[0] - 2 * p0[0] - p3[0]
    uy = 3 * p1[1] - 2 * p0[1] - p3[1]
    vx = 3 * p2[0] - p0[0] - 2 * p3[0]
    vy = 3 * p2[1] - p0[1] - 2 * p3[1]
    return max(ux * ux, vx * vx) + max(uy * uy, vy * vy)

def flatten_cubic(p0: Point, p1: Point, p2: Point, p3: Point,
                  tolerance: float = FLATNESS_TOLERANCE,
                  max_depth: int = MAX_SUBDIVISION_DEPTH) -> List[Point]:
    """Polyline approximating the cubic, excluding p0, ending exactly at p3."""
    points = []
    limit = 16.0 * tolerance * tolerance

    def subdivide(p0, p1, p2, p3, depth):
        if depth >= max_depth or cubic_flatness(p0, p1, p2, p3) <= limit:
            points.append(p3)
            return

        m01 = _midpoint(p0, p1)
        m12 = _midpoint(p1, p2)
        m23 = _midpoint(p2, p3)
        m012 = _midpoint(m01, m12)
        m123 = _midpoint(m12, m23)
        m0123 = _midpoint(m012, m123)

        subdivide(p0, m01, m012, m0123, depth + 1)
        subdivide(m0123, m123, m23, p3, depth + 1)

    subdivide(p0, p1, p2, p3, 0)
    return points

def _same_point(a: Point, b: Point) -> bool:
    return abs(a[0] - b[0]) <= DEGENERATE_EPSILON and abs(a[1] - b[1]) <= DEGENERATE_EPSILON

def flatten_subpath(subpath: Subpath, tolerance: float = FLATNESS_TOLERANCE) -> List[Point]:
    points = [subpath.start]
    for segment in subpath.segments:
        if segment[0] == CUBIC:
            new_points = flatten_cubic(points[-1], segment[1], segment[2], segment[3], tolerance)
        else:
            new_points = [segment[1]]
        for p in new_points:
            if not _same_point(points[-1], p):
                points.append(p)
    # the closing edge is implicit
    if subpath.closed and len(points) > 2 and _same_point(points[0], points[-1]):
        points.pop()
    return points

def bounds_of(points: Iterable[Point]) -> Optional[Bounds]:
    min_x = min_y = float('inf')
    max_x = max_y = float('-inf')
    for x, y in points:
        if x < min_x:
            min_x = x
        if x > max_x:
            max_x = x
        if y < min_y:
            min_y = y
        if y > max_y:
            max_y = y
    if min_x > max_x:
        return None
    return (min_x, min_y, max_x, max_y)

def union_bounds(boxes: Sequence[Optional[Bounds]]) -> Optional[Bounds]:
    boxes = [b for b in boxes if b is not None]
    if not boxes:
        return None
    return (min(b[0] for b in boxes), min(b[1] for b in boxes),
            max(b[2] for b in boxes), max(b[3] for b in boxes))

def flatten_points(points: Sequence[Point]) -> Tuple[float, ...]:
    return tuple(coord for point in points for coord in point)
