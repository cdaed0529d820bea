import unittest

import numpy as np

import ascii_converter
from font_fixtures import (RAMP, build_test_font, png_bytes, solid_png, solid_png16,
                           table_from_samples)
from glyph_coverage import CharacterSet, measure_font


class RenderLinesTest(unittest.TestCase):
    def setUp(self):
        self.table = table_from_samples([(" ", 0.0), (".", 0.2), ("+", 0.5), ("@", 1.0)])

    def test_row_major_mapping(self):
        grid = np.array([[0.0, 1.0], [0.5, 0.2], [0.9, 0.05]])
        self.assertEqual(ascii_converter.render_lines(grid, self.table), [" @", "+.", "@ "])

    def test_inverted(self):
        grid = np.array([[0.0, 1.0]])
        self.assertEqual(ascii_converter.render_lines(grid, self.table, invert=True), ["@ "])

    def test_text_lines_are_newline_terminated(self):
        grid = np.zeros((3, 4))
        text = ascii_converter.render_text(grid, self.table)
        self.assertEqual(text, "    \n" * 3)

    def test_grid_must_be_two_dimensional(self):
        with self.assertRaises(ValueError):
            ascii_converter.render_lines(np.zeros(5), self.table)


class ImageToAsciiTest(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        # 30 x 50 px glyph cell
        cls.table, _ = measure_font(build_test_font(), 50, CharacterSet(RAMP))

    def test_black_square_is_all_inkiest_glyph(self):
        text = ascii_converter.image_to_ascii(solid_png(100, 100, 0), self.table)
        lines = text.splitlines()
        self.assertEqual(len(lines), 2)
        for line in lines:
            self.assertEqual(len(line), 3)
            self.assertEqual(set(line), {"@"})

    def test_white_square_is_blank(self):
        text = ascii_converter.image_to_ascii(solid_png(100, 100, 255), self.table)
        self.assertEqual(text, "   \n   \n")

    def test_dark_sixteen_bit_image(self):
        text = ascii_converter.image_to_ascii(solid_png16(100, 100, 0x0800), self.table)
        self.assertEqual(text, "@@@\n@@@\n")

    def test_invert_swaps_ends_of_the_ramp(self):
        text = ascii_converter.image_to_ascii(solid_png(100, 100, 0), self.table, invert=True)
        self.assertEqual(text, "   \n   \n")

    def test_column_cap(self):
        text = ascii_converter.image_to_ascii(solid_png(600, 600, 0), self.table, max_cols=5)
        lines = text.splitlines()
        self.assertEqual(len(lines[0]), 5)
        self.assertEqual(len(lines), 3)

    def test_deterministic(self):
        rng = np.random.default_rng(3)
        data = png_bytes(rng.integers(0, 256, size=(120, 90), dtype=np.uint8))
        first = ascii_converter.image_to_ascii(data, self.table)
        second = ascii_converter.image_to_ascii(data, self.table)
        self.assertEqual(first, second)

    def test_gradient_darkens_left_to_right(self):
        row = np.linspace(255, 0, 300).astype(np.uint8)
        data = png_bytes(np.tile(row, (50, 1)))
        line = ascii_converter.image_to_ascii(data, self.table).splitlines()[0]
        self.assertEqual(line[-1], "@")
        ranks = [RAMP.index(ch) for ch in line]
        self.assertEqual(ranks, sorted(ranks))


if __name__ == "__main__":
    unittest.main()
