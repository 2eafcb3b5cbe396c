"""Scanline rasterizer.

Every visible shape is filled on its own: fill paths with the shape's fill
rule, then the expanded stroke outline with nonzero. Coverage is gathered
on SUBSAMPLES sub-scanlines per pixel row with exact horizontal span
coverage, and the paint is composited premultiplied "over" onto a float
canvas that starts transparent black.
"""
from __future__ import annotations
import logging
import math
import threading
from typing import List, Optional, Sequence, Tuple

import numpy as np

from svg_errors import AllocationError, RasterError
from svg_model import FillRule, Gradient, Image, Paint, PaintType, Shape, SpreadMethod
from svg_stroke import expand_stroke

logger = logging.getLogger(__name__)

SUBSAMPLES = 5
STROKE_TOLERANCE = 0.25

Point = Tuple[float, float]


def _build_edges(polygons: Sequence[Sequence[Point]]) -> list:
    """Non-horizontal edges as [ytop, ybottom, x at ytop, dx/dy, direction], sorted by ytop."""
    edges = []
    for polygon in polygons:
        n = len(polygon)
        if n < 2:
            continue
        for i in range(n):
            x0, y0 = polygon[i]
            x1, y1 = polygon[(i + 1) % n]
            if y0 == y1 or not all(math.isfinite(v) for v in (x0, y0, x1, y1)):
                continue
            if y0 < y1:
                edge = [y0, y1, x0, (x1 - x0) / (y1 - y0), 1]
            else:
                edge = [y1, y0, x1, (x0 - x1) / (y0 - y1), -1]
            if math.isfinite(edge[3]):
                edges.append(edge)
    edges.sort(key=lambda e: e[0])
    return edges


def _add_span(cover: np.ndarray, xa: float, xb: float, width: int):
    xa = max(xa, 0.0)
    xb = min(xb, float(width))
    if xb <= xa:
        return
    i0 = int(xa)
    i1 = int(xb)
    if i0 == i1:
        cover[i0] += xb - xa
        return
    cover[i0] += i0 + 1 - xa
    if i1 > i0 + 1:
        cover[i0 + 1:i1] += 1.0
    if i1 < width:
        cover[i1] += xb - i1


def _spread(t: np.ndarray, spread: SpreadMethod) -> np.ndarray:
    if spread == SpreadMethod.REPEAT:
        return t - np.floor(t)
    if spread == SpreadMethod.REFLECT:
        t = np.mod(t, 2.0)
        return np.where(t > 1.0, 2.0 - t, t)
    return np.clip(t, 0.0, 1.0)


def _radial_t(u: np.ndarray, v: np.ndarray, fx: float, fy: float) -> np.ndarray:
    """Gradient position for unit-space points, with the focus at (fx, fy).

    A point on the ray from the focus through p hits the unit circle at
    f + s*(p - f); the gradient position of p is then 1/s.
    """
    if fx == 0.0 and fy == 0.0:
        return np.hypot(u, v)
    focus_len = math.hypot(fx, fy)
    if focus_len > 0.99:
        fx *= 0.99 / focus_len
        fy *= 0.99 / focus_len
    dx = u - fx
    dy = v - fy
    dd = dx * dx + dy * dy
    fd = fx * dx + fy * dy
    ff = fx * fx + fy * fy
    with np.errstate(divide='ignore', invalid='ignore'):
        s = (-fd + np.sqrt(fd * fd - dd * (ff - 1.0))) / dd
        t = np.where(dd > 0, 1.0 / s, 0.0)
    return t


class Rasterizer:
    """Reusable rasterization state.

    Scratch buffers grow to the largest request seen and are kept between
    calls. One instance serves one caller at a time; an overlapping call is
    rejected rather than queued.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._canvas: Optional[np.ndarray] = None
        self._cover: Optional[np.ndarray] = None
        self._closed = False

    def close(self):
        self._canvas = None
        self._cover = None
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _check_request(self, x, y, scale, width, height, stride):
        if self._closed:
            raise RasterError("rasterizer has been closed")
        if width <= 0 or height <= 0:
            raise RasterError(f"invalid output size {width}x{height}")
        if stride < width * 4:
            raise RasterError(f"stride {stride} is smaller than {width * 4}")
        for name, value in (('x', x), ('y', y), ('scale', scale)):
            if not math.isfinite(value):
                raise RasterError(f"{name} must be finite, got {value}")

    def _scratch(self, width: int, height: int) -> Tuple[np.ndarray, np.ndarray]:
        try:
            if self._canvas is None or self._canvas.shape[0] < height or self._canvas.shape[1] < width:
                rows = max(height, 0 if self._canvas is None else self._canvas.shape[0])
                cols = max(width, 0 if self._canvas is None else self._canvas.shape[1])
                logger.debug("growing canvas to %dx%d", cols, rows)
                self._canvas = np.zeros((rows, cols, 4), dtype=np.float32)
                self._cover = np.zeros(cols + 1, dtype=np.float32)
        except MemoryError as exc:
            raise AllocationError(f"cannot allocate a {width}x{height} canvas") from exc
        canvas = self._canvas[:height, :width]
        canvas.fill(0.0)
        return canvas, self._cover

    def _render(self, image: Image, x: float, y: float, scale: float,
                width: int, height: int) -> np.ndarray:
        if not self._lock.acquire(blocking=False):
            raise RasterError("rasterizer is busy")
        try:
            canvas, cover = self._scratch(width, height)
            for shape in image.shapes:
                if not shape.visible or shape.opacity <= 0:
                    continue
                self._draw_shape(canvas, cover, shape, x, y, scale)
            try:
                return self._to_rgba8(canvas)
            except MemoryError as exc:
                raise AllocationError("cannot allocate the output buffer") from exc
        finally:
            self._lock.release()

    def _draw_shape(self, canvas, cover, shape: Shape, x, y, scale):
        pixel_paths = []
        for path in shape.paths:
            pixel_paths.append(([(px * scale + x, py * scale + y) for px, py in path.iter_points()],
                                path.closed))

        if shape.fill.is_drawable:
            edges = _build_edges([pts for pts, _ in pixel_paths])
            self._fill(canvas, cover, edges, shape.fill_rule, shape.fill, shape.opacity, x, y, scale)

        if shape.stroke.is_drawable and shape.stroke_width > 0:
            dashes = [d * scale for d in shape.stroke_dash_array]
            polygons = []
            for pts, closed in pixel_paths:
                polygons.extend(expand_stroke(pts, closed, shape.stroke_width * scale,
                                              shape.stroke_line_join, shape.stroke_line_cap,
                                              shape.miter_limit, dashes,
                                              shape.stroke_dash_offset * scale, STROKE_TOLERANCE))
            edges = _build_edges(polygons)
            self._fill(canvas, cover, edges, FillRule.NONZERO, shape.stroke, shape.opacity, x, y, scale)

    def _fill(self, canvas, cover, edges, fill_rule, paint: Paint, opacity, x, y, scale):
        if not edges:
            return
        height, width = canvas.shape[:2]
        first_row = max(0, int(math.floor(edges[0][0])))
        last_row = min(height - 1, int(math.ceil(max(e[1] for e in edges))))
        even_odd = fill_rule == FillRule.EVENODD

        active = []
        next_edge = 0
        step = 1.0 / SUBSAMPLES
        for row in range(first_row, last_row + 1):
            row_cover = cover[:width]
            row_cover.fill(0.0)
            left = width
            right = -1
            for sub in range(SUBSAMPLES):
                sy = row + (sub + 0.5) * step
                # expire finished edges, advance the rest
                active = [e for e in active if e[2] > sy]
                for e in active:
                    e[0] += e[1] * step
                while next_edge < len(edges) and edges[next_edge][0] <= sy:
                    ytop, ybot, xtop, dxdy, direction = edges[next_edge]
                    next_edge += 1
                    if ybot > sy:
                        active.append([xtop + (sy - ytop) * dxdy, dxdy, ybot, direction])
                if not active:
                    continue
                active.sort(key=lambda e: e[0])

                winding = 0
                span_start = 0.0
                for e in active:
                    was_inside = (winding & 1) if even_odd else winding != 0
                    winding += e[3]
                    inside = (winding & 1) if even_odd else winding != 0
                    if inside and not was_inside:
                        span_start = e[0]
                    elif was_inside and not inside:
                        _add_span(row_cover, span_start, e[0], width)
                        left = min(left, max(0, int(span_start)))
                        right = max(right, min(width - 1, int(e[0])))
            if right < left:
                continue
            alpha = np.clip(row_cover[left:right + 1] * step, 0.0, 1.0) * opacity
            self._composite(canvas[row, left:right + 1], alpha, paint, left, row, x, y, scale)

    def _composite(self, dst: np.ndarray, alpha: np.ndarray, paint: Paint,
                   left: int, row: int, x: float, y: float, scale: float):
        if paint.type == PaintType.COLOR:
            r, g, b, a = (c / 255.0 for c in paint.color)
            src_a = alpha * a
            src = np.empty((alpha.shape[0], 4), dtype=np.float32)
            src[:, 0] = r * src_a
            src[:, 1] = g * src_a
            src[:, 2] = b * src_a
            src[:, 3] = src_a
        else:
            src = self._sample_gradient(paint.gradient, alpha.shape[0], left, row, x, y, scale)
            src *= alpha[:, None]
        dst *= (1.0 - src[:, 3])[:, None]
        dst += src

    def _sample_gradient(self, gradient: Gradient, count: int, left: int, row: int,
                         x: float, y: float, scale: float) -> np.ndarray:
        """Premultiplied gradient colours for `count` pixel centres starting at `left`."""
        gx = (np.arange(left, left + count, dtype=np.float64) + 0.5 - x) / scale
        gy = (row + 0.5 - y) / scale
        m = gradient.transform
        u = m.a * gx + m.c * gy + m.e
        v = m.b * gx + m.d * gy + m.f
        if gradient.type == PaintType.LINEAR_GRADIENT:
            t = v
        else:
            t = _radial_t(u, v, gradient.fx, gradient.fy)
        t = _spread(t, gradient.spread)

        offsets = [stop.offset for stop in gradient.stops]
        colors = np.array([stop.color for stop in gradient.stops], dtype=np.float64) / 255.0
        src = np.empty((count, 4), dtype=np.float32)
        for channel in range(4):
            src[:, channel] = np.interp(t, offsets, colors[:, channel])
        src[:, :3] *= src[:, 3:4]
        return src

    @staticmethod
    def _to_rgba8(canvas: np.ndarray) -> np.ndarray:
        alpha = canvas[:, :, 3:4]
        with np.errstate(divide='ignore', invalid='ignore'):
            rgb = np.where(alpha > 0, canvas[:, :, :3] / alpha, 0.0)
        straight = np.concatenate([rgb, alpha], axis=2)
        return np.rint(np.clip(straight, 0.0, 1.0) * 255.0).astype(np.uint8)

    def rasterize_array(self, image: Image, x: float = 0.0, y: float = 0.0, scale: float = 1.0,
                        width: int = None, height: int = None) -> np.ndarray:
        """Rasterize into a fresh (height, width, 4) uint8 array."""
        if width is None:
            width = max(1, int(math.ceil(image.width)))
        if height is None:
            height = max(1, int(math.ceil(image.height)))
        self._check_request(x, y, scale, width, height, width * 4)
        return self._render(image, x, y, scale, width, height)

    def rasterize(self, image: Image, x: float, y: float, scale: float,
                  width: int, height: int, stride: int) -> bytes:
        """Flat RGBA8 buffer of height*stride bytes. Row padding is zero."""
        self._check_request(x, y, scale, width, height, stride)
        pixels = self._render(image, x, y, scale, width, height)
        try:
            out = np.zeros((height, stride), dtype=np.uint8)
        except MemoryError as exc:
            raise AllocationError(f"cannot allocate {height * stride} output bytes") from exc
        out[:, :width * 4] = pixels.reshape(height, width * 4)
        return out.tobytes()

    def rasterize_rows(self, image: Image, x: float, y: float, scale: float,
                       width: int, height: int) -> List[List[int]]:
        pixels = self.rasterize_array(image, x, y, scale, width, height)
        return [list(row) for row in pixels.reshape(height, width * 4).tolist()]

    def rasterize_image(self, image: Image) -> np.ndarray:
        """Rasterize at the image's natural size and scale."""
        return self.rasterize_array(image)


def create_rasterizer() -> Rasterizer:
    try:
        return Rasterizer()
    except MemoryError as exc:
        raise AllocationError("cannot create a rasterizer") from exc


def rasterize(rasterizer: Rasterizer, image: Image, x: float, y: float, scale: float,
              width: int, height: int, stride: int) -> bytes:
    return rasterizer.rasterize(image, x, y, scale, width, height, stride)
