"""Path data (`d` attribute) interpreter.

Turns the SVG path grammar into subpaths made only of straight lines and
cubic Beziers, in the element's local coordinates. Quadratics are raised
to cubics and elliptical arcs are split into cubic pieces of at most 90
degrees each.
"""
from __future__ import annotations
import logging
import math
import re
from typing import List, Optional, Tuple

from svg_transform import TransformMatrix

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

COMMANDS = 'MmZzLlHhVvCcSsQqTtAa'
ARG_COUNTS = {'M': 2, 'L': 2, 'H': 1, 'V': 1, 'C': 6, 'S': 4, 'Q': 4, 'T': 2, 'A': 7, 'Z': 0}
SEPARATORS = ' \t\n\r\f,'

float_pattern = re.compile(r'[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?')

LINE = 'L'
CUBIC = 'C'


class Subpath:
    """One move-to run: a start point, line/cubic segments, a closed flag.

    Segments are tuples: (LINE, end) or (CUBIC, control1, control2, end).
    """

    def __init__(self, start: Point):
        self.start = start
        self.segments = []
        self.closed = False

    def line_to(self, p: Point):
        self.segments.append((LINE, p))

    def cubic_to(self, c1: Point, c2: Point, p: Point):
        self.segments.append((CUBIC, c1, c2, p))

    def transformed(self, matrix: TransformMatrix) -> 'Subpath':
        result = Subpath(matrix.transform_point(*self.start))
        result.closed = self.closed
        for segment in self.segments:
            result.segments.append((segment[0],) + tuple(matrix.transform_point(*p) for p in segment[1:]))
        return result

    def __repr__(self):
        return f"Subpath(start={self.start}, segments={len(self.segments)}, closed={self.closed})"


def _ellipse_point(cx, cy, rx, ry, cos_phi, sin_phi, t):
    cos_t = math.cos(t)
    sin_t = math.sin(t)
    return (cx + rx * cos_t * cos_phi - ry * sin_t * sin_phi,
            cy + rx * cos_t * sin_phi + ry * sin_t * cos_phi)

def _ellipse_derivative(rx, ry, cos_phi, sin_phi, t):
    cos_t = math.cos(t)
    sin_t = math.sin(t)
    return (-rx * sin_t * cos_phi - ry * cos_t * sin_phi,
            -rx * sin_t * sin_phi + ry * cos_t * cos_phi)

def arc_to_cubics(x1: float, y1: float, rx: float, ry: float, rotation: float,
                  large_arc: bool, sweep: bool, x2: float, y2: float) -> list:
    """Convert an SVG endpoint-parameterised arc into segments.

    Follows the SVG implementation notes: the centre is recovered from the
    endpoints, radii that are too small to span them are scaled up
    uniformly, and each piece is approximated with the 4/3*tan(d/4) rule.
    """
    if x1 == x2 and y1 == y2:
        return []

    rx = abs(rx)
    ry = abs(ry)
    if rx == 0 or ry == 0:
        return [(LINE, (x2, y2))]

    phi = math.radians(rotation % 360.0)
    cos_phi = math.cos(phi)
    sin_phi = math.sin(phi)

    dx = (x1 - x2) / 2.0
    dy = (y1 - y2) / 2.0
    x1p = cos_phi * dx + sin_phi * dy
    y1p = -sin_phi * dx + cos_phi * dy

    lambda_val = (x1p * x1p) / (rx * rx) + (y1p * y1p) / (ry * ry)
    if lambda_val > 1:
        s = math.sqrt(lambda_val)
        rx *= s
        ry *= s

    num = rx * rx * ry * ry - rx * rx * y1p * y1p - ry * ry * x1p * x1p
    den = rx * rx * y1p * y1p + ry * ry * x1p * x1p
    factor = math.sqrt(max(0.0, num / den)) if den > 0 else 0.0
    if large_arc == sweep:
        factor = -factor

    cxp = factor * rx * y1p / ry
    cyp = -factor * ry * x1p / rx

    cx = cos_phi * cxp - sin_phi * cyp + (x1 + x2) / 2.0
    cy = sin_phi * cxp + cos_phi * cyp + (y1 + y2) / 2.0

    theta1 = math.atan2((y1p - cyp) / ry, (x1p - cxp) / rx)
    theta2 = math.atan2((-y1p - cyp) / ry, (-x1p - cxp) / rx)
    dtheta = theta2 - theta1
    if sweep and dtheta < 0:
        dtheta += 2 * math.pi
    elif not sweep and dtheta > 0:
        dtheta -= 2 * math.pi

    num_segments = max(1, int(math.ceil(abs(dtheta) / (math.pi / 2) - 1e-9)))
    step = dtheta / num_segments
    kappa = 4.0 / 3.0 * math.tan(step / 4.0)

    segments = []
    t0 = theta1
    p0 = (x1, y1)
    for i in range(num_segments):
        t1 = t0 + step
        if i == num_segments - 1:
            p1 = (x2, y2)
        else:
            p1 = _ellipse_point(cx, cy, rx, ry, cos_phi, sin_phi, t1)
        d0 = _ellipse_derivative(rx, ry, cos_phi, sin_phi, t0)
        d1 = _ellipse_derivative(rx, ry, cos_phi, sin_phi, t1)
        c1 = (p0[0] + kappa * d0[0], p0[1] + kappa * d0[1])
        c2 = (p1[0] - kappa * d1[0], p1[1] - kappa * d1[1])
        segments.append((CUBIC, c1, c2, p1))
        t0 = t1
        p0 = p1
    return segments


class PathDataError(ValueError):
    pass


class PathInterpreter:
    def __init__(self, data: str):
        self.data = data or ""
        self.pos = 0
        self.subpaths: List[Subpath] = []
        self.current: Optional[Subpath] = None
        self.x = 0.0
        self.y = 0.0
        self.start_x = 0.0
        self.start_y = 0.0
        self.prev_cubic_ctrl: Optional[Point] = None
        self.prev_quad_ctrl: Optional[Point] = None

    def _skip_separators(self):
        while self.pos < len(self.data) and self.data[self.pos] in SEPARATORS:
            self.pos += 1

    def _at_number(self) -> bool:
        self._skip_separators()
        return self.pos < len(self.data) and self.data[self.pos] in '+-.0123456789'

    def _read_number(self) -> float:
        self._skip_separators()
        match = float_pattern.match(self.data, self.pos)
        if not match:
            raise PathDataError(f"expected a number at offset {self.pos}")
        number = float(match.group(0))
        if not math.isfinite(number):
            raise PathDataError(f"number out of range at offset {self.pos}")
        self.pos = match.end()
        return number

    def _read_flag(self) -> bool:
        self._skip_separators()
        if self.pos < len(self.data) and self.data[self.pos] in '01':
            self.pos += 1
            return self.data[self.pos - 1] == '1'
        raise PathDataError(f"expected an arc flag at offset {self.pos}")

    def _read_args(self, cmd_upper: str) -> list:
        if cmd_upper == 'A':
            return [self._read_number(), self._read_number(), self._read_number(),
                    self._read_flag(), self._read_flag(),
                    self._read_number(), self._read_number()]
        return [self._read_number() for _ in range(ARG_COUNTS[cmd_upper])]

    def _flush(self):
        if self.current is not None:
            self.subpaths.append(self.current)
            self.current = None

    def _ensure_subpath(self):
        if self.current is None:
            # drawing after a close-path continues from the last start point
            self.current = Subpath((self.start_x, self.start_y))

    def run(self) -> List[Subpath]:
        cmd = None
        try:
            while True:
                self._skip_separators()
                if self.pos >= len(self.data):
                    break

                char = self.data[self.pos]
                if char in COMMANDS:
                    cmd = char
                    self.pos += 1
                elif cmd is None or cmd in 'Zz':
                    raise PathDataError(f"unexpected {char!r} at offset {self.pos}")
                elif cmd == 'M':
                    cmd = 'L'
                elif cmd == 'm':
                    cmd = 'l'
                elif not self._at_number():
                    raise PathDataError(f"unknown command {char!r} at offset {self.pos}")

                if cmd not in 'Mm' and not self.subpaths and self.current is None:
                    raise PathDataError("path data must begin with a move-to")

                cmd_upper = cmd.upper()
                args = self._read_args(cmd_upper)
                self._execute(cmd, cmd_upper, args)
        except PathDataError as exc:
            logger.debug("path data truncated: %s", exc)

        self._flush()
        return self.subpaths

    def _execute(self, cmd: str, cmd_upper: str, args: list):
        is_relative = cmd.islower()
        x, y = self.x, self.y
        new_cubic_ctrl = None
        new_quad_ctrl = None

        if cmd_upper == 'Z':
            if self.current is not None:
                self.current.closed = True
            self._flush()
            self.x, self.y = self.start_x, self.start_y

        elif cmd_upper == 'M':
            self._flush()
            if is_relative:
                x += args[0]
                y += args[1]
            else:
                x, y = args
            self.start_x, self.start_y = x, y
            self.current = Subpath((x, y))
            self.x, self.y = x, y

        elif cmd_upper in 'LHV':
            if cmd_upper == 'L':
                x, y = (x + args[0], y + args[1]) if is_relative else (args[0], args[1])
            elif cmd_upper == 'H':
                x = x + args[0] if is_relative else args[0]
            else:
                y = y + args[0] if is_relative else args[0]
            self._ensure_subpath()
            self.current.line_to((x, y))
            self.x, self.y = x, y

        elif cmd_upper in 'CS':
            if is_relative:
                pts = [(x + args[i], y + args[i + 1]) for i in range(0, len(args), 2)]
            else:
                pts = [(args[i], args[i + 1]) for i in range(0, len(args), 2)]
            if cmd_upper == 'C':
                c1, c2, end = pts
            else:
                # S mirrors the previous control point only after C or S
                if self.prev_cubic_ctrl is not None:
                    c1 = (2 * x - self.prev_cubic_ctrl[0], 2 * y - self.prev_cubic_ctrl[1])
                else:
                    c1 = (x, y)
                c2, end = pts
            self._ensure_subpath()
            self.current.cubic_to(c1, c2, end)
            new_cubic_ctrl = c2
            self.x, self.y = end

        elif cmd_upper in 'QT':
            if cmd_upper == 'Q':
                if is_relative:
                    ctrl = (x + args[0], y + args[1])
                    end = (x + args[2], y + args[3])
                else:
                    ctrl = (args[0], args[1])
                    end = (args[2], args[3])
            else:
                if self.prev_quad_ctrl is not None:
                    ctrl = (2 * x - self.prev_quad_ctrl[0], 2 * y - self.prev_quad_ctrl[1])
                else:
                    ctrl = (x, y)
                end = (x + args[0], y + args[1]) if is_relative else (args[0], args[1])
            c1 = (x + 2.0 / 3.0 * (ctrl[0] - x), y + 2.0 / 3.0 * (ctrl[1] - y))
            c2 = (end[0] + 2.0 / 3.0 * (ctrl[0] - end[0]), end[1] + 2.0 / 3.0 * (ctrl[1] - end[1]))
            self._ensure_subpath()
            self.current.cubic_to(c1, c2, end)
            new_quad_ctrl = ctrl
            self.x, self.y = end

        elif cmd_upper == 'A':
            rx, ry, rotation, large_arc, sweep, ex, ey = args
            if is_relative:
                ex += x
                ey += y
            self._ensure_subpath()
            for segment in arc_to_cubics(x, y, rx, ry, rotation, large_arc, sweep, ex, ey):
                self.current.segments.append(segment)
            self.x, self.y = ex, ey

        self.prev_cubic_ctrl = new_cubic_ctrl
        self.prev_quad_ctrl = new_quad_ctrl


def parse_path_data(data: str) -> List[Subpath]:
    """Interpret a `d` string. Malformed input ends interpretation early;
    everything read up to that point is returned."""
    return PathInterpreter(data).run()
