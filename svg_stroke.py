"""Stroke expansion.

A stroked polyline becomes a set of closed polygons that cover exactly
the painted stroke area when filled with the nonzero rule. Overlaps
between pieces are fine, nonzero merges them.
"""
from __future__ import annotations
import math
from typing import List, Sequence, Tuple

from svg_flatten import FLATNESS_TOLERANCE
from svg_model import LineCap, LineJoin

Point = Tuple[float, float]
Polygon = List[Point]

EPSILON = 1e-9
DEFAULT_MITER_LIMIT = 4.0

def _unit(ax: float, ay: float, bx: float, by: float) -> Tuple[float, float, float]:
    dx = bx - ax
    dy = by - ay
    length = math.hypot(dx, dy)
    return (dx / length, dy / length, length)

def polygon_area(polygon: Sequence[Point]) -> float:
    """Signed shoelace area."""
    area = 0.0
    n = len(polygon)
    for i in range(n):
        x0, y0 = polygon[i]
        x1, y1 = polygon[(i + 1) % n]
        area += x0 * y1 - x1 * y0
    return area * 0.5

def _dedupe(points: Sequence[Point], closed: bool) -> List[Point]:
    result = []
    for p in points:
        if not result or abs(p[0] - result[-1][0]) > EPSILON or abs(p[1] - result[-1][1]) > EPSILON:
            result.append((p[0], p[1]))
    if closed and len(result) > 1:
        first, last = result[0], result[-1]
        if abs(first[0] - last[0]) <= EPSILON and abs(first[1] - last[1]) <= EPSILON:
            result.pop()
    return result

def dash_polyline(points: Sequence[Point], closed: bool, dash_array: Sequence[float],
                  dash_offset: float = 0.0) -> List[List[Point]]:
    """Split a polyline into the "on" runs of a dash pattern.

    The pattern starts `dash_offset` units in and repeats cyclically.
    Runs are always open, even when the source polyline is closed. A
    run that crosses the start of a closed polyline comes back as one run.
    """
    if not points:
        return []
    segs = list(points)
    if closed and len(segs) > 1:
        segs.append(segs[0])

    count = len(dash_array)
    total = float(sum(dash_array))
    offset = dash_offset % total

    index = 0
    remaining = dash_array[0]
    while offset > 0:
        if offset >= remaining:
            offset -= remaining
            index = (index + 1) % count
            remaining = dash_array[index]
        else:
            remaining -= offset
            offset = 0.0

    on = index % 2 == 0
    starts_on = on
    runs = []
    current = [segs[0]] if on else None

    for i in range(len(segs) - 1):
        ax, ay = segs[i]
        bx, by = segs[i + 1]
        seg_len = math.hypot(bx - ax, by - ay)
        pos = 0.0
        while seg_len - pos > remaining:
            pos += remaining
            t = pos / seg_len
            p = (ax + (bx - ax) * t, ay + (by - ay) * t)
            if on:
                current.append(p)
                runs.append(current)
                current = None
            else:
                current = [p]
            on = not on
            index = (index + 1) % count
            remaining = dash_array[index]
        remaining -= seg_len - pos
        if on:
            current.append((bx, by))

    if on and current and len(current) > 1:
        if closed and starts_on and runs and remaining > EPSILON:
            # the dash carries on past the start point
            runs[0] = current + runs[0][1:]
        else:
            runs.append(current)
    return runs

def _arc_steps(half_width: float, angle: float, tolerance: float) -> int:
    if half_width > tolerance:
        da = 2.0 * math.acos(1.0 - tolerance / half_width)
    else:
        da = math.pi / 2
    return max(1, int(math.ceil(abs(angle) / da)))

def _arc(cx: float, cy: float, radius: float, start: float, delta: float,
         tolerance: float, endpoints: bool) -> List[Point]:
    steps = _arc_steps(radius, delta, tolerance)
    rng = range(0, steps + 1) if endpoints else range(1, steps)
    return [(cx + radius * math.cos(start + delta * k / steps),
             cy + radius * math.sin(start + delta * k / steps)) for k in rng]

def _cap(p: Point, dx: float, dy: float, hw: float, line_cap: LineCap, tolerance: float) -> List[Point]:
    """Points strictly between the left and right corners at an end facing (dx, dy)."""
    nx, ny = -dy, dx
    if line_cap == LineCap.SQUARE:
        return [(p[0] + (nx + dx) * hw, p[1] + (ny + dy) * hw),
                (p[0] + (-nx + dx) * hw, p[1] + (-ny + dy) * hw)]
    if line_cap == LineCap.ROUND:
        return _arc(p[0], p[1], hw, math.atan2(ny, nx), -math.pi, tolerance, endpoints=False)
    return []

def _outer_join(p: Point, n0: Tuple[float, float], n1: Tuple[float, float], forward: Tuple[float, float],
                hw: float, line_join: LineJoin, miter_limit: float, tolerance: float) -> List[Point]:
    bevel = [(p[0] + n0[0] * hw, p[1] + n0[1] * hw), (p[0] + n1[0] * hw, p[1] + n1[1] * hw)]
    dot = n0[0] * n1[0] + n0[1] * n1[1]

    if line_join == LineJoin.ROUND:
        cross = n0[0] * n1[1] - n0[1] * n1[0]
        delta = math.atan2(cross, dot)
        if abs(cross) < EPSILON and dot < 0:
            # U-turn: sweep around the front of the corner
            side = n0[0] * forward[1] - n0[1] * forward[0]
            delta = math.pi if side > 0 else -math.pi
        return _arc(p[0], p[1], hw, math.atan2(n0[1], n0[0]), delta, tolerance, endpoints=True)

    if line_join == LineJoin.MITER:
        denom = 1.0 + dot
        if denom > EPSILON and math.sqrt(2.0 / denom) <= miter_limit:
            mx = (n0[0] + n1[0]) / denom
            my = (n0[1] + n1[1]) / denom
            return [(p[0] + mx * hw, p[1] + my * hw)]

    return bevel

def _inner_join(p: Point, n0: Tuple[float, float], n1: Tuple[float, float], hw: float,
                max_reach: float) -> List[Point]:
    denom = 1.0 + n0[0] * n1[0] + n0[1] * n1[1]
    if denom > 0.1:
        mx = (n0[0] + n1[0]) / denom
        my = (n0[1] + n1[1]) / denom
        if math.hypot(mx, my) * hw <= max_reach:
            return [(p[0] + mx * hw, p[1] + my * hw)]
    # pivot through the centre line so nonzero still covers the corner
    return [(p[0] + n0[0] * hw, p[1] + n0[1] * hw), p, (p[0] + n1[0] * hw, p[1] + n1[1] * hw)]

def _dot(p: Point, hw: float, line_cap: LineCap, tolerance: float) -> Polygon:
    if line_cap == LineCap.ROUND:
        return _arc(p[0], p[1], hw, 0.0, 2 * math.pi, tolerance, endpoints=False) + [(p[0] + hw, p[1])]
    return [(p[0] - hw, p[1] - hw), (p[0] + hw, p[1] - hw), (p[0] + hw, p[1] + hw), (p[0] - hw, p[1] + hw)]

def _stroke_polyline(points: List[Point], closed: bool, hw: float, line_join: LineJoin,
                     line_cap: LineCap, miter_limit: float, tolerance: float) -> List[Polygon]:
    if len(points) == 1:
        if line_cap == LineCap.BUTT:
            return []
        return [_dot(points[0], hw, line_cap, tolerance)]
    if closed and len(points) < 3:
        closed = False

    n = len(points)
    edge_count = n if closed else n - 1
    dirs = []
    for i in range(edge_count):
        a = points[i]
        b = points[(i + 1) % n]
        dirs.append(_unit(a[0], a[1], b[0], b[1]))

    left: Polygon = []
    right: Polygon = []

    def join(i: int, d0, d1):
        p = points[i]
        n0 = (-d0[1], d0[0])
        n1 = (-d1[1], d1[0])
        cross = d0[0] * d1[1] - d0[1] * d1[0]
        dot = d0[0] * d1[0] + d0[1] * d1[1]
        reach = min(d0[2], d1[2])
        if abs(cross) < EPSILON and dot > 0:
            left.append((p[0] + n0[0] * hw, p[1] + n0[1] * hw))
            right.append((p[0] - n0[0] * hw, p[1] - n0[1] * hw))
        elif cross > 0:
            left.extend(_inner_join(p, n0, n1, hw, reach))
            right.extend(_outer_join(p, (-n0[0], -n0[1]), (-n1[0], -n1[1]), d0[:2],
                                     hw, line_join, miter_limit, tolerance))
        else:
            left.extend(_outer_join(p, n0, n1, d0[:2], hw, line_join, miter_limit, tolerance))
            right.extend(_inner_join(p, (-n0[0], -n0[1]), (-n1[0], -n1[1]), hw, reach))

    if closed:
        for i in range(n):
            join(i, dirs[i - 1], dirs[i])
        return [left, right[::-1]]

    first, last = dirs[0], dirs[-1]
    p0, pe = points[0], points[-1]
    left.append((p0[0] - first[1] * hw, p0[1] + first[0] * hw))
    right.append((p0[0] + first[1] * hw, p0[1] - first[0] * hw))
    for i in range(1, n - 1):
        join(i, dirs[i - 1], dirs[i])
    left.append((pe[0] - last[1] * hw, pe[1] + last[0] * hw))
    right.append((pe[0] + last[1] * hw, pe[1] - last[0] * hw))

    polygon = left + _cap(pe, last[0], last[1], hw, line_cap, tolerance)
    polygon += right[::-1]
    polygon += _cap(p0, -first[0], -first[1], hw, line_cap, tolerance)
    return [polygon]

def expand_stroke(points: Sequence[Point], closed: bool, width: float,
                  line_join: LineJoin = LineJoin.MITER, line_cap: LineCap = LineCap.BUTT,
                  miter_limit: float = DEFAULT_MITER_LIMIT, dash_array: Sequence[float] = (),
                  dash_offset: float = 0.0, tolerance: float = FLATNESS_TOLERANCE) -> List[Polygon]:
    """Outline polygons for a stroked polyline, to be filled nonzero."""
    if width <= 0 or not points:
        return []
    hw = width * 0.5
    pts = _dedupe(points, closed)

    if dash_array and sum(dash_array) > 0:
        polygons = []
        for run in dash_polyline(pts, closed, dash_array, dash_offset):
            run = _dedupe(run, False)
            polygons.extend(_stroke_polyline(run, False, hw, line_join, line_cap, miter_limit, tolerance))
        return polygons

    return _stroke_polyline(pts, closed, hw, line_join, line_cap, miter_limit, tolerance)
