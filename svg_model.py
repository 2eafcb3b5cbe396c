"""Immutable result tree produced by the document builder.

Coordinates are in the output units requested at parse time, with every
transform already applied, so paths can be filled directly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, Optional, Tuple

from svg_transform import TransformMatrix

Bounds = Tuple[float, float, float, float]
Color = Tuple[int, int, int, int]


class PaintType(IntEnum):
    UNDEFINED = -1
    NONE = 0
    COLOR = 1
    LINEAR_GRADIENT = 2
    RADIAL_GRADIENT = 3


class LineJoin(IntEnum):
    MITER = 0
    ROUND = 1
    BEVEL = 2


class LineCap(IntEnum):
    BUTT = 0
    ROUND = 1
    SQUARE = 2


class FillRule(IntEnum):
    NONZERO = 0
    EVENODD = 1


class SpreadMethod(IntEnum):
    PAD = 0
    REFLECT = 1
    REPEAT = 2


@dataclass(frozen=True)
class GradientStop:
    offset: float
    color: Color


@dataclass(frozen=True)
class Gradient:
    """A resolved gradient.

    `transform` maps image coordinates into the gradient's unit space.
    Linear gradients run along the unit-space y axis from 0 to 1; radial
    gradients run from the origin out to the unit circle, with the focus
    at (fx, fy) in that same space.
    """
    id: str
    type: PaintType
    stops: Tuple[GradientStop, ...]
    transform: TransformMatrix
    spread: SpreadMethod = SpreadMethod.PAD
    fx: float = 0.0
    fy: float = 0.0
    radius: float = 0.0


@dataclass(frozen=True)
class Paint:
    type: PaintType
    color: Optional[Color] = None
    gradient: Optional[Gradient] = None

    @property
    def is_drawable(self) -> bool:
        return self.type in (PaintType.COLOR, PaintType.LINEAR_GRADIENT,
                             PaintType.RADIAL_GRADIENT)


NO_PAINT = Paint(PaintType.NONE)
UNDEFINED_PAINT = Paint(PaintType.UNDEFINED)


@dataclass(frozen=True)
class Path:
    points: Tuple[float, ...]
    closed: bool
    bounds: Bounds

    @property
    def point_count(self) -> int:
        return len(self.points) // 2

    def iter_points(self) -> Iterator[Tuple[float, float]]:
        pts = self.points
        for i in range(0, len(pts) - 1, 2):
            yield (pts[i], pts[i + 1])


@dataclass(frozen=True)
class Shape:
    id: str
    fill: Paint
    stroke: Paint
    opacity: float
    stroke_width: float
    stroke_dash_offset: float
    stroke_dash_array: Tuple[float, ...]
    stroke_line_join: LineJoin
    stroke_line_cap: LineCap
    miter_limit: float
    fill_rule: FillRule
    bounds: Bounds
    transform: TransformMatrix
    paths: Tuple[Path, ...]
    visible: bool = True
    fill_gradient: str = ""
    stroke_gradient: str = ""

    @property
    def fill_type(self) -> PaintType:
        return self.fill.type

    @property
    def stroke_type(self) -> PaintType:
        return self.stroke.type


@dataclass(frozen=True)
class Image:
    width: float
    height: float
    shapes: Tuple[Shape, ...] = field(default_factory=tuple)
