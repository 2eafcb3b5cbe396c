"""
Tests for the path data interpreter.
"""

import math
import unittest
from svg_path import CUBIC, LINE, arc_to_cubics, parse_path_data


class TestPathData(unittest.TestCase):

    def test_closed_lines(self):
        subpaths = parse_path_data('M10 10 L20 10 20 20 Z')
        self.assertEqual(len(subpaths), 1)
        sp = subpaths[0]
        self.assertEqual(sp.start, (10.0, 10.0))
        self.assertTrue(sp.closed)
        self.assertEqual(sp.segments, [(LINE, (20.0, 10.0)), (LINE, (20.0, 20.0))])

    def test_implicit_line_after_move(self):
        sp = parse_path_data('M0 0 10 0 10 10')[0]
        self.assertEqual(len(sp.segments), 2)
        self.assertFalse(sp.closed)

    def test_relative_commands(self):
        sp = parse_path_data('m1 1 l2 0 h3 v4')[0]
        self.assertEqual(sp.start, (1.0, 1.0))
        self.assertEqual(sp.segments[-1], (LINE, (6.0, 5.0)))

    def test_compact_arc_flags(self):
        sp = parse_path_data('M0 0 a5 5 0 1010 0')[0]
        self.assertTrue(all(seg[0] == CUBIC for seg in sp.segments))
        self.assertEqual(len(sp.segments), 2)
        self.assertEqual(sp.segments[-1][3], (10.0, 0.0))

    def test_truncated_data_keeps_completed_segments(self):
        sp = parse_path_data('M0 0 L10 0 L')[0]
        self.assertEqual(sp.segments, [(LINE, (10.0, 0.0))])
        sp = parse_path_data('M0 0 L10 0 X 5 5')[0]
        self.assertEqual(len(sp.segments), 1)

    def test_out_of_range_number_stops_interpretation(self):
        subpaths = parse_path_data('M0 0 L10 0 L1e999 5 L0 10 Z')
        self.assertEqual(len(subpaths), 1)
        self.assertEqual(subpaths[0].segments, [(LINE, (10.0, 0.0))])
        self.assertFalse(subpaths[0].closed)

    def test_must_start_with_move(self):
        self.assertEqual(parse_path_data('L10 10'), [])
        self.assertEqual(parse_path_data(''), [])

    def test_drawing_after_close_starts_new_subpath(self):
        subpaths = parse_path_data('M0 0 L10 0 L10 10 Z L5 5')
        self.assertEqual(len(subpaths), 2)
        self.assertEqual(subpaths[1].start, (0.0, 0.0))
        self.assertFalse(subpaths[1].closed)

    def test_smooth_cubic_reflects_previous_control(self):
        sp = parse_path_data('M0 0 C0 10 10 10 10 0 S20 -10 20 0')[0]
        self.assertEqual(sp.segments[1][1], (10.0, -10.0))

    def test_smooth_cubic_without_previous_cubic(self):
        sp = parse_path_data('M0 0 L5 5 S10 10 20 0')[0]
        self.assertEqual(sp.segments[1][1], (5.0, 5.0))

    def test_quadratic_is_elevated(self):
        _, c1, c2, end = parse_path_data('M0 0 Q10 10 20 0')[0].segments[0]
        self.assertAlmostEqual(c1[0], 20.0 / 3.0)
        self.assertAlmostEqual(c1[1], 20.0 / 3.0)
        self.assertAlmostEqual(c2[0], 40.0 / 3.0)
        self.assertAlmostEqual(c2[1], 20.0 / 3.0)
        self.assertEqual(end, (20.0, 0.0))

    def test_smooth_quadratic_reflects(self):
        sp = parse_path_data('M0 0 Q10 10 20 0 T40 0')[0]
        _, c1, _, _ = sp.segments[1]
        # reflected control (30, -10) elevated from (20, 0)
        self.assertAlmostEqual(c1[0], 20.0 + 2.0 / 3.0 * 10.0)
        self.assertAlmostEqual(c1[1], -20.0 / 3.0)


class TestArcToCubics(unittest.TestCase):

    def test_zero_radius_is_a_line(self):
        self.assertEqual(arc_to_cubics(0, 0, 0, 5, 0, False, True, 10, 0), [(LINE, (10, 0))])

    def test_same_endpoints_draw_nothing(self):
        self.assertEqual(arc_to_cubics(3, 3, 5, 5, 0, False, True, 3, 3), [])

    def test_small_radii_are_scaled_up(self):
        segments = arc_to_cubics(0, 0, 1, 1, 0, False, True, 10, 0)
        self.assertEqual(len(segments), 2)
        self.assertEqual(segments[-1][3], (10, 0))
        for seg in segments:
            x, y = seg[3]
            self.assertAlmostEqual(math.hypot(x - 5, y), 5.0)

    def test_pieces_span_at_most_a_quarter_turn(self):
        segments = arc_to_cubics(10, 0, 10, 10, 0, True, True, 0, 10)
        self.assertEqual(len(segments), 3)


if __name__ == "__main__":
    unittest.main()
