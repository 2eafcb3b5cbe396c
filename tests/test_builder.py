"""
Tests for the document builder.
"""

import contextlib
import dataclasses
import io
import os
import tempfile
import unittest
from svg_builder import DocumentBuilder, parse, parse_bytes, parse_file
from svg_errors import ParseError
from svg_model import FillRule, LineCap, LineJoin, PaintType, SpreadMethod


def svg(body, attrs='width="100" height="100"'):
    return f'<svg {attrs} xmlns="http://www.w3.org/2000/svg">{body}</svg>'


class TestDocument(unittest.TestCase):
    """Document level parsing."""

    def test_dimensions(self):
        image = parse(svg('<rect x="10" y="10" width="80" height="80" fill="red"/>'))
        self.assertEqual(image.width, 100.0)
        self.assertEqual(image.height, 100.0)

    def test_shapes_in_document_order(self):
        image = parse(svg('<rect x="10" y="10" width="50" height="50" fill="red" id="rect1"/>'
                          '<circle cx="100" cy="100" r="30" fill="blue" id="circle1"/>',
                          'width="200" height="200"'))
        self.assertEqual([s.id for s in image.shapes], ['rect1', 'circle1'])
        self.assertEqual(image.shapes[0].fill_type, PaintType.COLOR)
        self.assertEqual(image.shapes[0].stroke_type, PaintType.NONE)
        self.assertEqual(image.shapes[1].fill.color, (0, 0, 255, 255))
        self.assertEqual(image.shapes[1].bounds, (70, 70, 130, 130))

    def test_shape_properties(self):
        image = parse(svg('<rect x="10" y="10" width="50" height="50" fill="red" stroke="blue" '
                          'stroke-width="2" stroke-linejoin="round" stroke-linecap="round" '
                          'fill-rule="evenodd" opacity="0.8" stroke-miterlimit="7"/>'))
        shape = image.shapes[0]
        self.assertEqual(shape.fill_type, PaintType.COLOR)
        self.assertEqual(shape.stroke_type, PaintType.COLOR)
        self.assertEqual(shape.stroke_width, 2.0)
        self.assertEqual(shape.stroke_line_join, LineJoin.ROUND)
        self.assertEqual(shape.stroke_line_cap, LineCap.ROUND)
        self.assertEqual(shape.fill_rule, FillRule.EVENODD)
        self.assertEqual(shape.miter_limit, 7.0)
        self.assertAlmostEqual(shape.opacity, 0.8)
        self.assertTrue(shape.visible)

    def test_path_properties(self):
        image = parse(svg('<path d="M10,10 L50,10 L50,50 L10,50 Z" fill="red"/>'))
        paths = image.shapes[0].paths
        self.assertEqual(len(paths), 1)
        self.assertEqual(paths[0].point_count, 4)
        self.assertEqual(len(paths[0].points), paths[0].point_count * 2)
        self.assertTrue(paths[0].closed)
        self.assertEqual(list(paths[0].iter_points())[2], (50.0, 50.0))

    def test_bounds(self):
        image = parse(svg('<rect x="50" y="50" width="100" height="100" fill="red"/>',
                          'width="200" height="200"'))
        self.assertEqual(image.shapes[0].bounds, (50.0, 50.0, 150.0, 150.0))
        self.assertEqual(image.shapes[0].paths[0].bounds, (50.0, 50.0, 150.0, 150.0))

    def test_parse_bytes(self):
        data = svg('<circle cx="25" cy="25" r="20" fill="green"/>', 'width="50" height="50"').encode('utf-8')
        image = parse_bytes(data)
        self.assertEqual((image.width, image.height), (50.0, 50.0))
        self.assertEqual(len(image.shapes), 1)
        with self.assertRaises(ParseError):
            parse_bytes(b'\xff\xfe<svg')

    def test_parse_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'test.svg')
            with open(path, 'w', encoding='utf-8') as f:
                f.write(svg('<rect width="10" height="10"/>'))
            self.assertEqual(len(parse_file(path).shapes), 1)
            with self.assertRaises(ParseError):
                parse_file(os.path.join(temp_dir, 'missing.svg'))

    def test_units(self):
        text = svg('<rect x="0.5in" y="0.5in" width="1in" height="1in" fill="purple"/>',
                   'width="2in" height="2in"')
        image = parse(text)
        self.assertEqual(image.width, 192.0)
        self.assertEqual(image.shapes[0].bounds, (48.0, 48.0, 144.0, 144.0))

        inches = parse(text, units='in')
        self.assertAlmostEqual(inches.width, 2.0)
        for actual, expected in zip(inches.shapes[0].bounds, (0.5, 0.5, 1.5, 1.5)):
            self.assertAlmostEqual(actual, expected)

        self.assertAlmostEqual(parse(text, dpi=72).width, 144.0)
        self.assertAlmostEqual(parse(svg('', 'width="10mm" height="5mm"'), units='mm').height, 5.0)

    def test_failures(self):
        for text in ('not an svg', '', '   ', '<html></html>'):
            with self.assertRaises(ParseError):
                parse(text)
        with self.assertRaises(ParseError):
            parse('<svg><rect width="1" height="1"/></svg>')
        with self.assertRaises(ParseError):
            parse(svg('', 'width="0" height="10"'))
        with self.assertRaises(ParseError):
            parse(svg(''), units='%')

    def test_image_is_immutable(self):
        image = parse(svg('<rect width="10" height="10"/>'))
        with self.assertRaises(dataclasses.FrozenInstanceError):
            image.width = 5
        with self.assertRaises(dataclasses.FrozenInstanceError):
            image.shapes[0].opacity = 0.5
        with self.assertRaises(dataclasses.FrozenInstanceError):
            image.shapes[0].transform.a = 42.0

    def test_enum_values(self):
        self.assertEqual(PaintType.COLOR, 1)
        self.assertEqual(PaintType.NONE, 0)
        self.assertEqual(PaintType.UNDEFINED, -1)
        self.assertEqual(PaintType.LINEAR_GRADIENT, 2)
        self.assertEqual(PaintType.RADIAL_GRADIENT, 3)
        self.assertEqual(LineJoin.MITER, 0)
        self.assertEqual(LineJoin.ROUND, 1)
        self.assertEqual(LineJoin.BEVEL, 2)
        self.assertEqual(LineCap.BUTT, 0)
        self.assertEqual(LineCap.ROUND, 1)
        self.assertEqual(LineCap.SQUARE, 2)
        self.assertEqual(FillRule.NONZERO, 0)
        self.assertEqual(FillRule.EVENODD, 1)


class TestViewport(unittest.TestCase):

    def test_view_box_scales_content(self):
        image = parse(svg('<rect width="100" height="50"/>', 'width="200" height="100" viewBox="0 0 100 50"'))
        self.assertEqual(image.shapes[0].bounds, (0.0, 0.0, 200.0, 100.0))

    def test_view_box_supplies_missing_size(self):
        image = parse(svg('', 'viewBox="0 0 30 40"'))
        self.assertEqual((image.width, image.height), (30.0, 40.0))

    def test_meet_centres_content(self):
        image = parse(svg('<rect width="100" height="100"/>', 'width="200" height="100" viewBox="0 0 100 100"'))
        self.assertEqual(image.shapes[0].bounds, (50.0, 0.0, 150.0, 100.0))

    def test_slice_and_none(self):
        attrs = 'width="200" height="100" viewBox="0 0 100 100" preserveAspectRatio="xMinYMin slice"'
        self.assertEqual(parse(svg('<rect width="100" height="100"/>', attrs)).shapes[0].bounds,
                         (0.0, 0.0, 200.0, 200.0))
        attrs = 'width="200" height="100" viewBox="0 0 100 100" preserveAspectRatio="none"'
        self.assertEqual(parse(svg('<rect width="100" height="100"/>', attrs)).shapes[0].bounds,
                         (0.0, 0.0, 200.0, 100.0))

    def test_nested_svg(self):
        image = parse(svg('<svg x="10" y="10" width="20" height="20" viewBox="0 0 10 10">'
                          '<rect width="10" height="10"/></svg>'))
        self.assertEqual(image.shapes[0].bounds, (10.0, 10.0, 30.0, 30.0))

    def test_relative_lengths(self):
        image = parse(svg('<rect width="50%" height="50%"/>', 'width="200" height="100"'))
        self.assertEqual(image.shapes[0].bounds, (0.0, 0.0, 100.0, 50.0))
        image = parse(svg('<g font-size="10"><rect width="2em" height="1ex"/></g>'))
        self.assertEqual(image.shapes[0].bounds, (0.0, 0.0, 20.0, 5.0))


class TestPrimitives(unittest.TestCase):

    def test_rounded_rect(self):
        shape = parse(svg('<rect width="20" height="10" rx="4"/>')).shapes[0]
        self.assertEqual(shape.bounds, (0.0, 0.0, 20.0, 10.0))
        self.assertGreater(shape.paths[0].point_count, 8)
        shape = parse(svg('<rect width="20" height="10" rx="50"/>')).shapes[0]
        self.assertEqual(shape.bounds, (0.0, 0.0, 20.0, 10.0))

    def test_ellipse_and_line(self):
        image = parse(svg('<ellipse cx="50" cy="50" rx="20" ry="10"/><line x1="1" y1="2" x2="3" y2="4"/>'))
        self.assertEqual(image.shapes[0].bounds, (30.0, 40.0, 70.0, 60.0))
        line = image.shapes[1].paths[0]
        self.assertEqual(line.points, (1.0, 2.0, 3.0, 4.0))
        self.assertFalse(line.closed)

    def test_polygon_ignores_odd_coordinate(self):
        path = parse(svg('<polygon points="0,0 10,0 10,10 5"/>')).shapes[0].paths[0]
        self.assertEqual(path.point_count, 3)
        self.assertTrue(path.closed)
        path = parse(svg('<polyline points="0 0 10 0 10 10"/>')).shapes[0].paths[0]
        self.assertFalse(path.closed)

    def test_bad_points_keep_leading_pairs(self):
        builder = DocumentBuilder()
        image = builder.build(svg('<polyline points="0,0 10,0 x 10,10"/>'))
        self.assertEqual(image.shapes[0].paths[0].point_count, 2)
        self.assertTrue(builder.warnings)

    def test_truncated_path_is_kept(self):
        path = parse(svg('<path d="M0 0 L10 0 L10 10 Q"/>')).shapes[0].paths[0]
        self.assertEqual(path.point_count, 3)

    def test_out_of_range_number_ends_path(self):
        path = parse(svg('<path d="M0 0 L10 0 L1e999 5 L0 10 Z"/>')).shapes[0].paths[0]
        self.assertEqual(list(path.iter_points()), [(0.0, 0.0), (10.0, 0.0)])
        self.assertFalse(path.closed)

    def test_empty_shapes_are_dropped(self):
        image = parse(svg('<rect width="0" height="10"/><path d=""/><circle r="-1"/>'
                          '<polyline points="1 1"/><path d="M5 5"/>'))
        self.assertEqual(len(image.shapes), 0)

    def test_multiple_subpaths(self):
        shape = parse(svg('<path d="M0 0 H10 V10 Z M20 20 H30 V30 Z"/>')).shapes[0]
        self.assertEqual(len(shape.paths), 2)
        self.assertEqual(shape.bounds, (0.0, 0.0, 30.0, 30.0))

    def test_use(self):
        image = parse(svg('<defs><rect id="r" width="10" height="10"/></defs>'
                          '<use href="#r" x="5" y="5"/>'))
        self.assertEqual(len(image.shapes), 1)
        self.assertEqual(image.shapes[0].id, 'r')
        self.assertEqual(image.shapes[0].bounds, (5.0, 5.0, 15.0, 15.0))

    def test_use_cycle_is_cut(self):
        builder = DocumentBuilder()
        image = builder.build(svg('<g id="a"><rect width="1" height="1"/><use href="#a"/></g>'))
        self.assertEqual(len(image.shapes), 2)
        self.assertTrue(any('cycle' in w for w in builder.warnings))

    def test_non_rendered_containers(self):
        image = parse(svg('<defs><rect width="1" height="1"/></defs>'
                          '<clipPath><rect width="1" height="1"/></clipPath>'
                          '<symbol><rect width="1" height="1"/></symbol>'))
        self.assertEqual(len(image.shapes), 0)


class TestStyle(unittest.TestCase):

    def test_inheritance(self):
        shape = parse(svg('<g fill="red" stroke="blue" stroke-width="3"><rect width="1" height="1"/></g>')).shapes[0]
        self.assertEqual(shape.fill.color, (255, 0, 0, 255))
        self.assertEqual(shape.stroke.color, (0, 0, 255, 255))
        self.assertEqual(shape.stroke_width, 3.0)

    def test_default_paint(self):
        shape = parse(svg('<rect width="1" height="1"/>')).shapes[0]
        self.assertEqual(shape.fill.color, (0, 0, 0, 255))
        self.assertEqual(shape.stroke_type, PaintType.NONE)
        self.assertEqual(shape.fill_rule, FillRule.NONZERO)

    def test_invalid_value_keeps_inherited(self):
        builder = DocumentBuilder()
        image = builder.build(svg('<g fill="red"><rect fill="notacolor" width="1" height="1"/></g>'))
        self.assertEqual(image.shapes[0].fill.color, (255, 0, 0, 255))
        self.assertIn('<rect> has invalid fill value: notacolor', builder.warnings)

    def test_out_of_range_colour_keeps_inherited(self):
        builder = DocumentBuilder()
        image = builder.build(svg('<rect width="10" height="10" fill="rgb(1e999,0,0)"/>'))
        self.assertEqual(image.shapes[0].fill.color, (0, 0, 0, 255))
        self.assertIn('<rect> has invalid fill value: rgb(1e999,0,0)', builder.warnings)

    def test_opacity_folds_into_paint(self):
        shape = parse(svg('<rect fill="red" fill-opacity="0.5" stroke="lime" stroke-opacity="50%" '
                          'width="1" height="1"/>')).shapes[0]
        self.assertEqual(shape.fill.color, (255, 0, 0, 128))
        self.assertEqual(shape.stroke.color, (0, 255, 0, 128))
        self.assertEqual(shape.opacity, 1.0)

    def test_current_color(self):
        shape = parse(svg('<g color="blue"><rect fill="currentColor" width="1" height="1"/></g>')).shapes[0]
        self.assertEqual(shape.fill.color, (0, 0, 255, 255))

    def test_display_and_visibility(self):
        image = parse(svg('<g style="display:none"><rect width="1" height="1"/></g>'
                          '<rect display="none" width="1" height="1"/>'
                          '<rect visibility="hidden" width="1" height="1"/>'))
        self.assertEqual(len(image.shapes), 1)
        self.assertFalse(image.shapes[0].visible)

    def test_stroke_scaled_by_transform(self):
        shape = parse(svg('<g transform="scale(2)"><rect stroke="black" stroke-width="3" '
                          'stroke-dasharray="1 2 3" stroke-dashoffset="1" width="10" height="10"/></g>')).shapes[0]
        self.assertEqual(shape.stroke_width, 6.0)
        self.assertEqual(shape.stroke_dash_array, (2.0, 4.0, 6.0, 2.0, 4.0, 6.0))
        self.assertEqual(shape.stroke_dash_offset, 2.0)
        self.assertEqual(shape.bounds, (0.0, 0.0, 20.0, 20.0))

    def test_zero_dash_pattern_is_solid(self):
        shape = parse(svg('<rect stroke="black" stroke-dasharray="0 0" width="1" height="1"/>')).shapes[0]
        self.assertEqual(shape.stroke_dash_array, ())

    def test_bad_transform_is_ignored(self):
        builder = DocumentBuilder()
        image = builder.build(svg('<rect transform="translate(5,5) bogus(1)" width="1" height="1"/>'))
        self.assertEqual(image.shapes[0].bounds, (0.0, 0.0, 1.0, 1.0))
        self.assertTrue(builder.warnings)

    def test_validation_report(self):
        builder = DocumentBuilder()
        builder.build(svg('<circle cx="1" cy="1"/>'))
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            builder.print_validation_report()
        self.assertIn('<circle> should have radius (r)', out.getvalue())


class TestGradients(unittest.TestCase):

    STOPS = '<stop offset="0" stop-color="red"/><stop offset="1" stop-color="blue"/>'

    def test_forward_reference(self):
        image = parse(svg('<rect width="100" height="20" fill="url(#g)"/>'
                          f'<defs><linearGradient id="g">{self.STOPS}</linearGradient></defs>'))
        shape = image.shapes[0]
        self.assertEqual(shape.fill_type, PaintType.LINEAR_GRADIENT)
        self.assertEqual(shape.fill_gradient, 'g')
        gradient = shape.fill.gradient
        self.assertEqual(gradient.id, 'g')
        self.assertEqual([s.offset for s in gradient.stops], [0.0, 1.0])
        self.assertEqual(gradient.stops[1].color, (0, 0, 255, 255))
        self.assertEqual(gradient.spread, SpreadMethod.PAD)
        # bounding box units: halfway across the rect is halfway along the gradient
        self.assertAlmostEqual(gradient.transform.transform_point(50, 10)[1], 0.5)
        self.assertAlmostEqual(gradient.transform.transform_point(100, 0)[1], 1.0)

    def test_unresolved_reference(self):
        builder = DocumentBuilder()
        image = builder.build(svg('<rect width="10" height="10" fill="url(#missing)"/>'))
        self.assertEqual(image.shapes[0].fill_type, PaintType.UNDEFINED)
        self.assertEqual(image.shapes[0].fill_gradient, 'missing')
        self.assertTrue(any('missing' in w for w in builder.warnings))

    def test_stop_count_edge_cases(self):
        image = parse(svg('<linearGradient id="one"><stop offset="0.5" stop-color="lime"/></linearGradient>'
                          '<linearGradient id="none"/>'
                          '<rect width="10" height="10" fill="url(#one)" stroke="url(#none)"/>'))
        shape = image.shapes[0]
        self.assertEqual(shape.fill_type, PaintType.COLOR)
        self.assertEqual(shape.fill.color, (0, 255, 0, 255))
        self.assertEqual(shape.stroke_type, PaintType.NONE)

    def test_href_inheritance(self):
        image = parse(svg(f'<linearGradient id="base" spreadMethod="reflect">{self.STOPS}</linearGradient>'
                          '<linearGradient id="derived" href="#base" x2="0" y2="1"/>'
                          '<rect width="10" height="10" fill="url(#derived)"/>'))
        gradient = image.shapes[0].fill.gradient
        self.assertEqual(gradient.id, 'derived')
        self.assertEqual(len(gradient.stops), 2)
        self.assertEqual(gradient.spread, SpreadMethod.REFLECT)
        self.assertAlmostEqual(gradient.transform.transform_point(3, 5)[1], 0.5)

    def test_stop_opacity_and_offsets(self):
        image = parse(svg('<linearGradient id="g"><stop offset="50%" stop-color="red" stop-opacity="0.5"/>'
                          '<stop offset="0.2" stop-color="blue"/></linearGradient>'
                          '<rect width="10" height="10" fill="url(#g)" fill-opacity="0.5"/>'))
        stops = image.shapes[0].fill.gradient.stops
        self.assertEqual([s.offset for s in stops], [0.5, 0.5])
        self.assertEqual(stops[0].color, (255, 0, 0, 64))

    def test_radial_user_space(self):
        image = parse(svg('<radialGradient id="r" gradientUnits="userSpaceOnUse" cx="50" cy="50" r="50" fx="75">'
                          f'{self.STOPS}</radialGradient><rect width="100" height="100" fill="url(#r)"/>'))
        gradient = image.shapes[0].fill.gradient
        self.assertEqual(gradient.type, PaintType.RADIAL_GRADIENT)
        self.assertEqual(gradient.radius, 50.0)
        self.assertAlmostEqual(gradient.fx, 0.5)
        self.assertAlmostEqual(gradient.fy, 0.0)
        u, v = gradient.transform.transform_point(100, 50)
        self.assertAlmostEqual(u, 1.0)
        self.assertAlmostEqual(v, 0.0)


if __name__ == "__main__":
    unittest.main()
