"""Document builder: markup text to an immutable Image.

The tree is walked once with a stack of drawing contexts, producing shapes
whose paint references are still unresolved. Gradient references are then
resolved in a second pass, so a shape may name a gradient that is defined
later in the document.
"""
from __future__ import annotations
import logging
import math
from typing import List, Optional, Tuple

from drawing_context import DrawingContext
from svg_colors import get_color_with_opacity, parse_color
from svg_errors import ParseError
from svg_flatten import FLATNESS_TOLERANCE, bounds_of, flatten_points, flatten_subpath, union_bounds
from svg_model import (Gradient, GradientStop, Image, NO_PAINT, Paint, Path, PaintType, Shape,
                       SpreadMethod, UNDEFINED_PAINT)
from svg_parser import Node, build_tree, tokenize
from svg_path import Subpath, parse_path_data
from svg_transform import TransformMatrix, parse_transform
from svg_units import (DEFAULT_DPI, DEFAULT_UNITS, list_separator_pattern, normalized_diagonal,
                       parse_number, parse_number_with_unit, parse_view_box, to_pixels,
                       unit_to_pixels)

logger = logging.getLogger(__name__)

# 4/3 * (sqrt(2) - 1): cubic control distance for a quarter circle
KAPPA90 = 0.5522847493

CONTAINER_TAGS = ('g', 'a', 'switch')
SHAPE_TAGS = ('rect', 'circle', 'ellipse', 'line', 'polyline', 'polygon', 'path')
GRADIENT_TAGS = ('linearGradient', 'radialGradient')
SPREAD_METHODS = {'pad': SpreadMethod.PAD, 'reflect': SpreadMethod.REFLECT,
                  'repeat': SpreadMethod.REPEAT}


def viewbox_transform(view_box: Tuple[float, float, float, float], width: float, height: float,
                      preserve_aspect: str = 'xMidYMid meet') -> TransformMatrix:
    """Map a viewBox onto a width x height viewport."""
    vb_min_x, vb_min_y, vb_width, vb_height = view_box
    scale_x = width / vb_width
    scale_y = height / vb_height

    parts = preserve_aspect.strip().split()
    if parts and parts[0] == 'defer':
        parts = parts[1:]
    align = parts[0].lower() if parts else 'xmidymid'

    if align == 'none':
        return TransformMatrix(scale_x, 0.0, 0.0, scale_y, -vb_min_x * scale_x, -vb_min_y * scale_y)

    meet_or_slice = parts[1].lower() if len(parts) > 1 else 'meet'
    if meet_or_slice == 'slice':
        scale = max(scale_x, scale_y)
    else:
        scale = min(scale_x, scale_y)

    scaled_width = vb_width * scale
    scaled_height = vb_height * scale

    if 'xmin' in align:
        offset_x = 0.0
    elif 'xmax' in align:
        offset_x = width - scaled_width
    else:
        offset_x = (width - scaled_width) / 2.0

    if 'ymin' in align:
        offset_y = 0.0
    elif 'ymax' in align:
        offset_y = height - scaled_height
    else:
        offset_y = (height - scaled_height) / 2.0

    return TransformMatrix(scale, 0.0, 0.0, scale, offset_x - vb_min_x * scale, offset_y - vb_min_y * scale)


def rect_subpath(x: float, y: float, w: float, h: float, rx: float = 0.0, ry: float = 0.0) -> Subpath:
    if rx <= 0 or ry <= 0:
        sp = Subpath((x, y))
        sp.line_to((x + w, y))
        sp.line_to((x + w, y + h))
        sp.line_to((x, y + h))
    else:
        kx = rx * (1 - KAPPA90)
        ky = ry * (1 - KAPPA90)
        sp = Subpath((x + rx, y))
        sp.line_to((x + w - rx, y))
        sp.cubic_to((x + w - kx, y), (x + w, y + ky), (x + w, y + ry))
        sp.line_to((x + w, y + h - ry))
        sp.cubic_to((x + w, y + h - ky), (x + w - kx, y + h), (x + w - rx, y + h))
        sp.line_to((x + rx, y + h))
        sp.cubic_to((x + kx, y + h), (x, y + h - ky), (x, y + h - ry))
        sp.line_to((x, y + ry))
        sp.cubic_to((x, y + ky), (x + kx, y), (x + rx, y))
    sp.closed = True
    return sp


def ellipse_subpath(cx: float, cy: float, rx: float, ry: float) -> Subpath:
    kx = rx * KAPPA90
    ky = ry * KAPPA90
    sp = Subpath((cx + rx, cy))
    sp.cubic_to((cx + rx, cy + ky), (cx + kx, cy + ry), (cx, cy + ry))
    sp.cubic_to((cx - kx, cy + ry), (cx - rx, cy + ky), (cx - rx, cy))
    sp.cubic_to((cx - rx, cy - ky), (cx - kx, cy - ry), (cx, cy - ry))
    sp.cubic_to((cx + kx, cy - ry), (cx + rx, cy - ky), (cx + rx, cy))
    sp.closed = True
    return sp


class DocumentBuilder:
    """Builds one Image per `build` call.

    Problems that do not stop the document (bad attribute values, unknown
    references, truncated path data) are collected in `warnings`.
    """

    def __init__(self, units: str = DEFAULT_UNITS, dpi: float = DEFAULT_DPI,
                 tolerance: float = FLATNESS_TOLERANCE):
        if not math.isfinite(dpi) or dpi <= 0:
            raise ParseError(f"invalid dpi: {dpi}")
        try:
            self.unit_scale = 1.0 / unit_to_pixels(units, dpi)
        except ValueError as exc:
            raise ParseError(f"unsupported output units: {units!r}") from exc
        self.units = units
        self.dpi = dpi
        self.tolerance = tolerance
        self.warnings: List[str] = []
        self._ids = {}
        self._viewport = (0.0, 0.0)
        self._pending = []
        self._use_stack = []

    def _warn(self, message: str):
        logger.debug(message)
        self.warnings.append(message)

    def _invalid_attribute(self, node: Node, attr_name: str, value: str):
        self._warn(f"<{node.tag}> has invalid {attr_name} value: {value}")

    def _length(self, value: str, direction: str = 'diag', font_size: float = 16.0) -> float:
        width, height = self._viewport
        if direction == 'x':
            reference = width
        elif direction == 'y':
            reference = height
        else:
            reference = normalized_diagonal(width, height)
        return to_pixels(value, self.dpi, reference, font_size)

    def _attr_length(self, node: Node, ctx: DrawingContext, name: str, direction: str,
                     default: float = 0.0) -> float:
        value = node.attributes.get(name)
        if value is None or value.strip() == 'auto':
            return default
        try:
            return self._length(value, direction, ctx.font_size)
        except ValueError:
            self._invalid_attribute(node, name, value)
            return default

    def build(self, text: str) -> Image:
        if text is None or not text.strip():
            raise ParseError("empty document")

        root = build_tree(tokenize(text))
        if root is None:
            raise ParseError("no root <svg> element found")

        self.warnings = []
        self._pending = []
        self._use_stack = []
        self._ids = {}
        for node in root.iter():
            node_id = node.attributes.get('id')
            if node_id and node_id not in self._ids:
                self._ids[node_id] = node

        width, height, view_box = self._root_viewport(root)
        root_matrix = TransformMatrix.scale(self.unit_scale)
        if view_box is not None:
            preserve = root.get_attribute('preserveAspectRatio', 'xMidYMid meet')
            root_matrix = root_matrix.multiply(viewbox_transform(view_box, width, height, preserve))
            self._viewport = (view_box[2], view_box[3])
        else:
            self._viewport = (width, height)

        ctx = DrawingContext()
        ctx.apply_node_attributes(root, self._length, self._invalid_attribute)
        ctx.transform = root_matrix
        self._walk_children(root, ctx)

        shapes = []
        for node, shape_ctx, paths in self._pending:
            shapes.append(self._make_shape(node, shape_ctx, paths))

        logger.debug("built %d shapes with %d warnings", len(shapes), len(self.warnings))
        return Image(width * self.unit_scale, height * self.unit_scale, tuple(shapes))

    def _root_viewport(self, root: Node) -> Tuple[float, float, Optional[tuple]]:
        view_box = None
        if 'viewBox' in root.attributes:
            try:
                view_box = parse_view_box(root.attributes['viewBox'])
            except ValueError:
                self._invalid_attribute(root, 'viewBox', root.attributes['viewBox'])

        dimensions = []
        for name, index in (('width', 2), ('height', 3)):
            value = root.attributes.get(name)
            size = None
            if value is not None:
                try:
                    size = to_pixels(value, self.dpi)
                except ValueError:
                    self._invalid_attribute(root, name, value)
            if size is None and view_box is not None:
                size = view_box[index]
            if size is None:
                raise ParseError(f"root <svg> has no usable {name} and no viewBox")
            if size <= 0:
                raise ParseError(f"invalid viewport {name}: {size}")
            dimensions.append(size)
        return dimensions[0], dimensions[1], view_box

    def _walk_children(self, node: Node, ctx: DrawingContext):
        for child in node.children:
            self._walk(child, ctx)

    def _walk(self, node: Node, parent_ctx: DrawingContext):
        tag = node.tag
        if tag not in CONTAINER_TAGS and tag not in SHAPE_TAGS and tag not in ('svg', 'use'):
            # defs, gradients, clipPath, symbol, text and the like are not drawn
            return
        if node.attributes.get('display', '').strip() == 'none':
            return

        ctx = parent_ctx.push()
        ctx.apply_node_attributes(node, self._length, self._invalid_attribute)
        if not ctx.apply_transform(node.attributes.get('transform')):
            self._invalid_attribute(node, 'transform', node.attributes['transform'])

        if tag in CONTAINER_TAGS:
            self._walk_children(node, ctx)
        elif tag == 'svg':
            self._walk_nested_svg(node, ctx)
        elif tag == 'use':
            self._walk_use(node, ctx)
        else:
            subpaths = self._shape_subpaths(node, ctx)
            if subpaths:
                self._add_shape(node, ctx, subpaths)

    def _walk_nested_svg(self, node: Node, ctx: DrawingContext):
        x = self._attr_length(node, ctx, 'x', 'x')
        y = self._attr_length(node, ctx, 'y', 'y')
        width = self._attr_length(node, ctx, 'width', 'x', self._viewport[0])
        height = self._attr_length(node, ctx, 'height', 'y', self._viewport[1])
        if width <= 0 or height <= 0:
            return

        ctx.transform = ctx.transform.multiply(TransformMatrix.translate(x, y))
        saved_viewport = self._viewport
        self._viewport = (width, height)
        if 'viewBox' in node.attributes:
            try:
                view_box = parse_view_box(node.attributes['viewBox'])
                preserve = node.get_attribute('preserveAspectRatio', 'xMidYMid meet')
                ctx.transform = ctx.transform.multiply(viewbox_transform(view_box, width, height, preserve))
                self._viewport = (view_box[2], view_box[3])
            except ValueError:
                self._invalid_attribute(node, 'viewBox', node.attributes['viewBox'])
        self._walk_children(node, ctx)
        self._viewport = saved_viewport

    def _walk_use(self, node: Node, ctx: DrawingContext):
        href = node.attributes.get('href') or node.attributes.get('xlink:href')
        if not href or not href.startswith('#'):
            self._warn("<use> without a local href")
            return
        target_id = href[1:]
        target = self._ids.get(target_id)
        if target is None:
            self._warn(f"<use> references unknown element #{target_id}")
            return
        if target_id in self._use_stack:
            self._warn(f"<use> reference cycle through #{target_id}")
            return

        x = self._attr_length(node, ctx, 'x', 'x')
        y = self._attr_length(node, ctx, 'y', 'y')
        ctx.transform = ctx.transform.multiply(TransformMatrix.translate(x, y))

        self._use_stack.append(target_id)
        try:
            if target.tag == 'symbol':
                symbol_ctx = ctx.push()
                symbol_ctx.apply_node_attributes(target, self._length, self._invalid_attribute)
                self._walk_children(target, symbol_ctx)
            else:
                self._walk(target, ctx)
        finally:
            self._use_stack.pop()

    def _shape_subpaths(self, node: Node, ctx: DrawingContext) -> List[Subpath]:
        tag = node.tag
        attrs = node.attributes

        if tag == 'path':
            if 'd' not in attrs:
                self._warn("<path> should have 'd' (path data) attribute")
                return []
            subpaths = parse_path_data(attrs['d'])
            if not subpaths and attrs['d'].strip():
                self._invalid_attribute(node, 'd', attrs['d'])
            return subpaths

        if tag == 'rect':
            x = self._attr_length(node, ctx, 'x', 'x')
            y = self._attr_length(node, ctx, 'y', 'y')
            w = self._attr_length(node, ctx, 'width', 'x')
            h = self._attr_length(node, ctx, 'height', 'y')
            if w < 0 or h < 0:
                self._warn(f"<rect> has negative size: {w}x{h}")
            if w <= 0 or h <= 0:
                return []
            rx = self._attr_length(node, ctx, 'rx', 'x', -1.0)
            ry = self._attr_length(node, ctx, 'ry', 'y', -1.0)
            if rx < 0 and ry >= 0:
                rx = ry
            elif ry < 0 and rx >= 0:
                ry = rx
            rx = min(max(rx, 0.0), w / 2.0)
            ry = min(max(ry, 0.0), h / 2.0)
            return [rect_subpath(x, y, w, h, rx, ry)]

        if tag == 'circle':
            if 'r' not in attrs:
                self._warn("<circle> should have radius (r)")
            cx = self._attr_length(node, ctx, 'cx', 'x')
            cy = self._attr_length(node, ctx, 'cy', 'y')
            r = self._attr_length(node, ctx, 'r', 'diag')
            if r < 0:
                self._warn(f"<circle> has negative radius: {r}")
            if r <= 0:
                return []
            return [ellipse_subpath(cx, cy, r, r)]

        if tag == 'ellipse':
            if 'rx' not in attrs and 'ry' not in attrs:
                self._warn("<ellipse> should have rx or ry")
            cx = self._attr_length(node, ctx, 'cx', 'x')
            cy = self._attr_length(node, ctx, 'cy', 'y')
            rx = self._attr_length(node, ctx, 'rx', 'x', -1.0)
            ry = self._attr_length(node, ctx, 'ry', 'y', -1.0)
            if rx < 0:
                rx = ry
            if ry < 0:
                ry = rx
            if rx <= 0 or ry <= 0:
                return []
            return [ellipse_subpath(cx, cy, rx, ry)]

        if tag == 'line':
            missing = [name for name in ('x1', 'y1', 'x2', 'y2') if name not in attrs]
            if missing:
                self._warn(f"<line> missing attributes: {', '.join(missing)}")
            sp = Subpath((self._attr_length(node, ctx, 'x1', 'x'), self._attr_length(node, ctx, 'y1', 'y')))
            sp.line_to((self._attr_length(node, ctx, 'x2', 'x'), self._attr_length(node, ctx, 'y2', 'y')))
            return [sp]

        # polyline, polygon
        if 'points' not in attrs:
            self._warn(f"<{tag}> should have points attribute")
            return []
        coords = []
        for part in list_separator_pattern.split(attrs['points'].strip()):
            if not part:
                continue
            try:
                coords.append(parse_number(part))
            except ValueError:
                self._invalid_attribute(node, 'points', attrs['points'])
                break
        if len(coords) < 4:
            return []
        sp = Subpath((coords[0], coords[1]))
        for i in range(2, len(coords) - 1, 2):
            sp.line_to((coords[i], coords[i + 1]))
        sp.closed = tag == 'polygon'
        return [sp]

    def _add_shape(self, node: Node, ctx: DrawingContext, subpaths: List[Subpath]):
        paths = []
        for subpath in subpaths:
            if not subpath.segments:
                continue
            points = flatten_subpath(subpath.transformed(ctx.transform), self.tolerance)
            paths.append(Path(flatten_points(points), subpath.closed, bounds_of(points)))
        if paths:
            self._pending.append((node, ctx, tuple(paths)))

    def _make_shape(self, node: Node, ctx: DrawingContext, paths: Tuple[Path, ...]) -> Shape:
        scale = ctx.transform.average_scale()
        fill = self._resolve_paint(ctx.fill, ctx.fill_opacity, ctx, paths)
        stroke = self._resolve_paint(ctx.stroke, ctx.stroke_opacity, ctx, paths)
        return Shape(
            id=node.attributes.get('id', ''),
            fill=fill,
            stroke=stroke,
            opacity=ctx.opacity,
            stroke_width=ctx.stroke_width * scale,
            stroke_dash_offset=ctx.stroke_dash_offset * scale,
            stroke_dash_array=tuple(d * scale for d in ctx.stroke_dash_array),
            stroke_line_join=ctx.stroke_line_join,
            stroke_line_cap=ctx.stroke_line_cap,
            miter_limit=ctx.miter_limit,
            fill_rule=ctx.fill_rule,
            bounds=union_bounds([p.bounds for p in paths]),
            transform=ctx.transform,
            paths=paths,
            visible=ctx.visible,
            fill_gradient=ctx.fill[1] if ctx.fill[0] == 'url' else '',
            stroke_gradient=ctx.stroke[1] if ctx.stroke[0] == 'url' else '',
        )

    def _resolve_paint(self, spec, opacity: float, ctx: DrawingContext, paths) -> Paint:
        kind, value = spec
        if kind == 'none':
            return NO_PAINT
        if kind == 'color':
            return Paint(PaintType.COLOR, get_color_with_opacity(value, opacity))
        if kind == 'currentColor':
            return Paint(PaintType.COLOR, get_color_with_opacity(ctx.color, opacity))

        gradient = self._gradient_attributes(value)
        if gradient is None:
            self._warn(f"paint references unknown gradient #{value}")
            return UNDEFINED_PAINT
        return self._gradient_paint(value, gradient, opacity, ctx, paths)

    def _gradient_attributes(self, gradient_id: str):
        """Follow the href chain: (tag, merged attributes, stop nodes)."""
        node = self._ids.get(gradient_id)
        if node is None or node.tag not in GRADIENT_TAGS:
            return None
        tag = node.tag
        attrs = {}
        stops = None
        seen = set()
        while node is not None and node.tag in GRADIENT_TAGS and id(node) not in seen:
            seen.add(id(node))
            for key, val in node.attributes.items():
                attrs.setdefault(key, val)
            if stops is None:
                own_stops = [child for child in node.children if child.tag == 'stop']
                if own_stops:
                    stops = own_stops
            href = node.attributes.get('href') or node.attributes.get('xlink:href')
            node = self._ids.get(href[1:]) if href and href.startswith('#') else None
        return tag, attrs, stops or []

    def _gradient_stops(self, stop_nodes: List[Node], opacity: float) -> List[GradientStop]:
        stops = []
        last_offset = 0.0
        for node in stop_nodes:
            offset = 0.0
            value = node.attributes.get('offset')
            if value is not None:
                try:
                    offset, unit = parse_number_with_unit(value)
                    if unit == '%':
                        offset /= 100.0
                    elif unit:
                        raise ValueError(value)
                except ValueError:
                    self._invalid_attribute(node, 'offset', value)
                    offset = 0.0
            offset = max(last_offset, min(1.0, max(0.0, offset)))
            last_offset = offset

            color = (0, 0, 0, 255)
            value = node.attributes.get('stop-color')
            if value is not None:
                try:
                    color = parse_color(value)
                except ValueError:
                    self._invalid_attribute(node, 'stop-color', value)
            stop_opacity = 1.0
            value = node.attributes.get('stop-opacity')
            if value is not None:
                try:
                    stop_opacity = max(0.0, min(1.0, parse_number(value)))
                except ValueError:
                    self._invalid_attribute(node, 'stop-opacity', value)
            stops.append(GradientStop(offset, get_color_with_opacity(color, stop_opacity * opacity)))
        return stops

    def _gradient_paint(self, gradient_id: str, gradient, opacity: float,
                        ctx: DrawingContext, paths) -> Paint:
        tag, attrs, stop_nodes = gradient
        stops = self._gradient_stops(stop_nodes, opacity)
        if not stops:
            return NO_PAINT
        if len(stops) == 1:
            return Paint(PaintType.COLOR, stops[0].color)
        solid = Paint(PaintType.COLOR, stops[-1].color)

        object_box = attrs.get('gradientUnits', 'objectBoundingBox').strip() != 'userSpaceOnUse'

        def decode(value: str, direction: str) -> float:
            if object_box:
                num_value, unit = parse_number_with_unit(value)
                if unit == '%':
                    return num_value / 100.0
                if unit:
                    raise ValueError(value)
                return num_value
            return self._length(value, direction, ctx.font_size)

        def coord(name: str, default: str, direction: str) -> float:
            value = attrs.get(name, default)
            try:
                return decode(value, direction)
            except ValueError:
                self._warn(f"<{tag}> has invalid {name} value: {value}")
            try:
                return decode(default, direction)
            except ValueError:
                return 0.0

        matrix = ctx.transform
        if object_box:
            try:
                local = ctx.transform.inverse()
            except ValueError:
                return NO_PAINT
            box = bounds_of(local.transform_point(px, py) for path in paths for px, py in path.iter_points())
            box_w = box[2] - box[0]
            box_h = box[3] - box[1]
            if box_w <= 0 or box_h <= 0:
                return NO_PAINT
            matrix = matrix.multiply(TransformMatrix(box_w, 0.0, 0.0, box_h, box[0], box[1]))
        if 'gradientTransform' in attrs:
            try:
                matrix = matrix.multiply(parse_transform(attrs['gradientTransform']))
            except ValueError:
                self._warn(f"<{tag}> has invalid gradientTransform value: {attrs['gradientTransform']}")

        spread_value = attrs.get('spreadMethod', 'pad').strip()
        spread = SPREAD_METHODS.get(spread_value, SpreadMethod.PAD)

        if tag == 'linearGradient':
            x1 = coord('x1', '0%', 'x')
            y1 = coord('y1', '0%', 'y')
            x2 = coord('x2', '100%', 'x')
            y2 = coord('y2', '0%', 'y')
            dx = x2 - x1
            dy = y2 - y1
            if dx == 0 and dy == 0:
                return solid
            unit_to_image = matrix.multiply(TransformMatrix(dy, -dx, dx, dy, x1, y1))
            paint_type = PaintType.LINEAR_GRADIENT
            fx = fy = radius = 0.0
        else:
            cx = coord('cx', '50%', 'x')
            cy = coord('cy', '50%', 'y')
            radius = coord('r', '50%', 'diag')
            fx_abs = coord('fx', attrs.get('cx', '50%'), 'x')
            fy_abs = coord('fy', attrs.get('cy', '50%'), 'y')
            if radius <= 0:
                return solid
            unit_to_image = matrix.multiply(TransformMatrix(radius, 0.0, 0.0, radius, cx, cy))
            paint_type = PaintType.RADIAL_GRADIENT
            fx = (fx_abs - cx) / radius
            fy = (fy_abs - cy) / radius

        try:
            transform = unit_to_image.inverse()
        except ValueError:
            return NO_PAINT
        return Paint(paint_type, gradient=Gradient(gradient_id, paint_type, tuple(stops), transform,
                                                   spread, fx, fy, radius))

    def print_validation_report(self):
        if not self.warnings:
            print("SVG validation: [OK] Valid")
            return
        print("SVG validation: [WARNING] Warnings:")
        for warning in self.warnings:
            print(f"  WARNING: {warning}")


def parse(text: str, units: str = DEFAULT_UNITS, dpi: float = DEFAULT_DPI) -> Image:
    """Parse SVG markup into an Image expressed in `units`."""
    return DocumentBuilder(units, dpi).build(text)


def parse_bytes(data: bytes, units: str = DEFAULT_UNITS, dpi: float = DEFAULT_DPI) -> Image:
    try:
        text = data.decode('utf-8-sig')
    except UnicodeDecodeError as exc:
        raise ParseError(f"document is not valid UTF-8: {exc}") from exc
    return parse(text, units, dpi)


def parse_file(path: str, units: str = DEFAULT_UNITS, dpi: float = DEFAULT_DPI) -> Image:
    try:
        with open(path, 'rb') as file:
            data = file.read()
    except OSError as exc:
        raise ParseError(f"cannot read {path}: {exc}") from exc
    return parse_bytes(data, units, dpi)
