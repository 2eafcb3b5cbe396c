from __future__ import annotations
import copy
import logging
import re
from typing import Callable, Optional

from svg_colors import parse_color
from svg_model import FillRule, LineCap, LineJoin
from svg_parser import Node
from svg_stroke import DEFAULT_MITER_LIMIT
from svg_transform import TransformMatrix, parse_transform
from svg_units import parse_number, parse_number_with_unit, parse_dash_array

logger = logging.getLogger(__name__)

url_pattern = re.compile(r'^url\(\s*[\'"]?#([^\'")\s]+)[\'"]?\s*\)$')

LINE_JOINS = {'miter': LineJoin.MITER, 'miter-clip': LineJoin.MITER, 'arcs': LineJoin.MITER,
              'round': LineJoin.ROUND, 'bevel': LineJoin.BEVEL}
LINE_CAPS = {'butt': LineCap.BUTT, 'round': LineCap.ROUND, 'square': LineCap.SQUARE}
FILL_RULES = {'nonzero': FillRule.NONZERO, 'evenodd': FillRule.EVENODD}

# (kind, value): ('none', None) ('color', rgba) ('url', id) ('currentColor', None)
PaintSpec = tuple

def parse_paint(value: str) -> PaintSpec:
    value = value.strip()
    if value == 'none':
        return ('none', None)
    if value.lower() == 'currentcolor':
        return ('currentColor', None)
    if value.startswith('url('):
        match = url_pattern.match(value)
        if not match:
            raise ValueError(f"bad paint reference: {value}")
        return ('url', match.group(1))
    return ('color', parse_color(value))

def parse_opacity(value: str) -> float:
    num_value, unit = parse_number_with_unit(value)
    if unit == '%':
        num_value /= 100.0
    elif unit:
        raise ValueError(f"bad opacity: {value}")
    return max(0.0, min(1.0, num_value))

def parse_keyword(value: str, table: dict):
    key = value.strip().lower()
    if key not in table:
        raise ValueError(f"unknown keyword: {value}")
    return table[key]

# resolves a length string to user units; direction is 'x', 'y' or 'diag'
LengthResolver = Callable[[str, str, float], float]

class DrawingContext:
    """Cumulative transform and inherited presentation attributes.

    Values are kept already decoded, so a malformed attribute on a child
    leaves the parent's value in place.
    """

    def __init__(self):
        self.transform = TransformMatrix.identity()
        self.fill = ('color', (0, 0, 0, 255))
        self.fill_opacity = 1.0
        self.fill_rule = FillRule.NONZERO
        self.stroke = ('none', None)
        self.stroke_opacity = 1.0
        self.stroke_width = 1.0
        self.stroke_dash_array = []
        self.stroke_dash_offset = 0.0
        self.stroke_line_join = LineJoin.MITER
        self.stroke_line_cap = LineCap.BUTT
        self.miter_limit = DEFAULT_MITER_LIMIT
        self.opacity = 1.0
        self.color = (0, 0, 0, 255)
        self.font_size = 16.0
        self.visible = True

    def push(self) -> 'DrawingContext':
        new_ctx = copy.copy(self)
        new_ctx.stroke_dash_array = list(self.stroke_dash_array)
        return new_ctx

    def apply_transform(self, transform_str: Optional[str]) -> bool:
        if transform_str is None:
            return True
        try:
            matrix = parse_transform(transform_str)
        except ValueError as exc:
            logger.debug("ignoring transform %r: %s", transform_str, exc)
            return False
        if not matrix.is_identity():
            self.transform = self.transform.multiply(matrix)
        return True

    def apply_node_attributes(self, node: Node, length: LengthResolver,
                              on_invalid: Callable[[Node, str, str], None] = None) -> None:
        # font-size first: em lengths below depend on it
        for attr_name in ('font-size', 'color', 'fill', 'fill-opacity', 'fill-rule',
                          'stroke', 'stroke-opacity', 'stroke-width', 'stroke-dasharray',
                          'stroke-dashoffset', 'stroke-linejoin', 'stroke-linecap',
                          'stroke-miterlimit', 'opacity', 'visibility'):
            value = node.attributes.get(attr_name)
            if value is None or value.strip() == 'inherit':
                continue
            try:
                self._apply(attr_name, value, length)
            except ValueError as exc:
                logger.debug("<%s> ignoring %s=%r: %s", node.tag, attr_name, value, exc)
                if on_invalid is not None:
                    on_invalid(node, attr_name, value)

    def _apply(self, attr_name: str, value: str, length: LengthResolver):
        if attr_name == 'font-size':
            size = length(value, 'diag', self.font_size)
            if size < 0:
                raise ValueError("negative font size")
            self.font_size = size
        elif attr_name == 'color':
            if value.strip().lower() != 'currentcolor':
                self.color = parse_color(value)
        elif attr_name == 'fill':
            self.fill = parse_paint(value)
        elif attr_name == 'fill-opacity':
            self.fill_opacity = parse_opacity(value)
        elif attr_name == 'fill-rule':
            self.fill_rule = parse_keyword(value, FILL_RULES)
        elif attr_name == 'stroke':
            self.stroke = parse_paint(value)
        elif attr_name == 'stroke-opacity':
            self.stroke_opacity = parse_opacity(value)
        elif attr_name == 'stroke-width':
            width = length(value, 'diag', self.font_size)
            if width < 0:
                raise ValueError("negative stroke width")
            self.stroke_width = width
        elif attr_name == 'stroke-dasharray':
            self.stroke_dash_array = parse_dash_array(
                value, lambda v: length(v, "diag", self.font_size))
        elif attr_name == 'stroke-dashoffset':
            self.stroke_dash_offset = length(value, 'diag', self.font_size)
        elif attr_name == 'stroke-linejoin':
            self.stroke_line_join = parse_keyword(value, LINE_JOINS)
        elif attr_name == 'stroke-linecap':
            self.stroke_line_cap = parse_keyword(value, LINE_CAPS)
        elif attr_name == 'stroke-miterlimit':
            limit = parse_number(value)
            if limit < 1.0:
                raise ValueError("miter limit below 1")
            self.miter_limit = limit
        elif attr_name == 'opacity':
            self.opacity = parse_opacity(value)
        elif attr_name == 'visibility':
            self.visible = value.strip().lower() not in ('hidden', 'collapse')
