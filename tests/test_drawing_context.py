"""
Tests for inherited presentation state.
"""

import unittest
from drawing_context import DrawingContext, parse_opacity, parse_paint
from svg_model import LineCap
from svg_parser import Node
from svg_units import to_pixels


def length(value, direction, font_size):
    return to_pixels(value, reference=100.0, font_size=font_size)


class TestPaintValues(unittest.TestCase):

    def test_parse_paint(self):
        self.assertEqual(parse_paint('none'), ('none', None))
        self.assertEqual(parse_paint('currentColor'), ('currentColor', None))
        self.assertEqual(parse_paint("url('#grad')"), ('url', 'grad'))
        self.assertEqual(parse_paint('#00f'), ('color', (0, 0, 255, 255)))
        with self.assertRaises(ValueError):
            parse_paint('url(grad')

    def test_parse_opacity(self):
        self.assertEqual(parse_opacity('0.25'), 0.25)
        self.assertEqual(parse_opacity('50%'), 0.5)
        self.assertEqual(parse_opacity('3'), 1.0)
        with self.assertRaises(ValueError):
            parse_opacity('half')


class TestDrawingContext(unittest.TestCase):

    def test_push_copies_state(self):
        parent = DrawingContext()
        parent.stroke_dash_array = [1.0, 2.0]
        child = parent.push()
        child.stroke_dash_array.append(3.0)
        child.apply_transform('translate(5)')
        self.assertEqual(parent.stroke_dash_array, [1.0, 2.0])
        self.assertTrue(parent.transform.is_identity())

    def test_identity_transform_keeps_matrix(self):
        ctx = DrawingContext()
        ctx.apply_transform('translate(3, 4)')
        before = ctx.transform
        self.assertTrue(ctx.apply_transform('scale(1) rotate(0)'))
        self.assertIs(ctx.transform, before)
        self.assertFalse(ctx.apply_transform('scale('))
        self.assertIs(ctx.transform, before)

    def test_invalid_values_are_reported_and_ignored(self):
        invalid = []
        ctx = DrawingContext()
        node = Node('<rect stroke-width="-1" stroke-linecap="round" opacity="inherit" fill="nope"/>')
        ctx.apply_node_attributes(node, length, lambda n, name, value: invalid.append(name))
        self.assertEqual(ctx.stroke_width, 1.0)
        self.assertEqual(ctx.stroke_line_cap, LineCap.ROUND)
        self.assertEqual(ctx.opacity, 1.0)
        self.assertEqual(sorted(invalid), ['fill', 'stroke-width'])

    def test_font_size_applies_before_em_lengths(self):
        ctx = DrawingContext()
        ctx.apply_node_attributes(Node('<g stroke-width="0.5em" font-size="20"/>'), length)
        self.assertEqual(ctx.font_size, 20.0)
        self.assertEqual(ctx.stroke_width, 10.0)


if __name__ == "__main__":
    unittest.main()
