from __future__ import annotations
import math
import re
from dataclasses import dataclass

from svg_units import parse_number_list

transform_pattern = re.compile(
    r'\s*(matrix|translate|rotate|scale|skewX|skewY)\s*\(([^)]*)\)\s*,?',
    re.IGNORECASE
)

@dataclass(frozen=True)
class TransformMatrix:
    """2x3 affine matrix [a c e; b d f], applied as x' = a*x + c*y + e."""

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @staticmethod
    def identity() -> 'TransformMatrix':
        return TransformMatrix(1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

    @staticmethod
    def translate(tx: float, ty: float) -> 'TransformMatrix':
        return TransformMatrix(1.0, 0.0, 0.0, 1.0, tx, ty)

    @staticmethod
    def scale(sx: float, sy: float = None) -> 'TransformMatrix':
        if sy is None:
            sy = sx
        return TransformMatrix(sx, 0.0, 0.0, sy, 0.0, 0.0)

    @staticmethod
    def rotate(angle_degrees: float, cx: float = 0.0, cy: float = 0.0) -> 'TransformMatrix':
        angle_rad = math.radians(angle_degrees)
        cos_a = math.cos(angle_rad)
        sin_a = math.sin(angle_rad)
        r = TransformMatrix(cos_a, sin_a, -sin_a, cos_a, 0.0, 0.0)

        if cx != 0.0 or cy != 0.0:
            t1 = TransformMatrix.translate(-cx, -cy)
            t2 = TransformMatrix.translate(cx, cy)
            return t2.multiply(r).multiply(t1)
        return r

    @staticmethod
    def skew_x(angle_degrees: float) -> 'TransformMatrix':
        return TransformMatrix(1.0, 0.0, math.tan(math.radians(angle_degrees)), 1.0, 0.0, 0.0)

    @staticmethod
    def skew_y(angle_degrees: float) -> 'TransformMatrix':
        return TransformMatrix(1.0, math.tan(math.radians(angle_degrees)), 0.0, 1.0, 0.0, 0.0)

    def multiply(self, other: 'TransformMatrix') -> 'TransformMatrix':
        """self * other: `other` is applied first."""
        return TransformMatrix(
            self.a * other.a + self.c * other.b,
            self.b * other.a + self.d * other.b,
            self.a * other.c + self.c * other.d,
            self.b * other.c + self.d * other.d,
            self.a * other.e + self.c * other.f + self.e,
            self.b * other.e + self.d * other.f + self.f
        )

    def is_identity(self) -> bool:
        return (abs(self.a - 1.0) < 1e-6 and abs(self.b) < 1e-6 and
                abs(self.c) < 1e-6 and abs(self.d - 1.0) < 1e-6 and
                abs(self.e) < 1e-6 and abs(self.f) < 1e-6)

    def determinant(self) -> float:
        return self.a * self.d - self.b * self.c

    def average_scale(self) -> float:
        sx = math.sqrt(self.a * self.a + self.b * self.b)
        sy = math.sqrt(self.c * self.c + self.d * self.d)
        return (sx + sy) * 0.5

    def transform_point(self, x: float, y: float) -> tuple[float, float]:
        new_x = self.a * x + self.c * y + self.e
        new_y = self.b * x + self.d * y + self.f
        return (new_x, new_y)

    def inverse(self) -> 'TransformMatrix':
        det = self.determinant()
        if abs(det) < 1e-12:
            raise ValueError("transform is not invertible")

        inv_det = 1.0 / det
        new_a = self.d * inv_det
        new_b = -self.b * inv_det
        new_c = -self.c * inv_det
        new_d = self.a * inv_det
        new_e = (self.c * self.f - self.d * self.e) * inv_det
        new_f = (self.b * self.e - self.a * self.f) * inv_det
        return TransformMatrix(new_a, new_b, new_c, new_d, new_e, new_f)

    def to_list(self) -> list[float]:
        return [self.a, self.b, self.c, self.d, self.e, self.f]

    def __repr__(self):
        return "TransformMatrix({:g}, {:g}, {:g}, {:g}, {:g}, {:g})".format(*self.to_list())

def parse_transform(transform_str: str) -> TransformMatrix:
    """Parse an SVG transform list into a single matrix.

    Raises ValueError when any part of the list is malformed, so the
    caller can drop the attribute as a whole.
    """
    result = TransformMatrix.identity()
    if transform_str is None:
        raise ValueError("missing transform")

    pos = 0
    text = transform_str.strip()
    while pos < len(text):
        match = transform_pattern.match(text, pos)
        if not match:
            raise ValueError(f"bad transform near: {text[pos:]!r}")
        pos = match.end()

        func_name = match.group(1).lower()
        params = parse_number_list(match.group(2))

        if func_name == 'matrix':
            if len(params) != 6:
                raise ValueError("matrix() takes six numbers")
            new_transform = TransformMatrix(*params)

        elif func_name == 'translate':
            if len(params) not in (1, 2):
                raise ValueError("translate() takes one or two numbers")
            ty = params[1] if len(params) > 1 else 0.0
            new_transform = TransformMatrix.translate(params[0], ty)

        elif func_name == 'rotate':
            if len(params) not in (1, 3):
                raise ValueError("rotate() takes one or three numbers")
            cx, cy = (params[1], params[2]) if len(params) == 3 else (0.0, 0.0)
            new_transform = TransformMatrix.rotate(params[0], cx, cy)

        elif func_name == 'scale':
            if len(params) not in (1, 2):
                raise ValueError("scale() takes one or two numbers")
            sy = params[1] if len(params) > 1 else None
            new_transform = TransformMatrix.scale(params[0], sy)

        elif func_name == 'skewx':
            if len(params) != 1:
                raise ValueError("skewX() takes one number")
            new_transform = TransformMatrix.skew_x(params[0])

        else:
            if len(params) != 1:
                raise ValueError("skewY() takes one number")
            new_transform = TransformMatrix.skew_y(params[0])

        result = result.multiply(new_transform)

    return result
