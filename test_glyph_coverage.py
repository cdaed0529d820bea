import os
import tempfile
import unittest

from errors import FontParseError, InvalidParameter, NoUsableGlyphs, StorageError
from font_fixtures import RAMP, build_test_font, corrupt_glyf_font
from glyph_coverage import CharacterSet, measure_font, measure_font_file, printable_ascii

SIZE = 50


class CharacterSetTest(unittest.TestCase):
    def test_printable_ascii(self):
        chars = printable_ascii()
        self.assertEqual(len(chars), 95)
        self.assertEqual(chars[0], " ")
        self.assertEqual(chars[-1], "~")

    def test_empty_set_is_invalid(self):
        with self.assertRaises(InvalidParameter):
            CharacterSet("")

    def test_duplicates_are_invalid(self):
        with self.assertRaises(InvalidParameter):
            CharacterSet("abca")


class MeasureFontTest(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.font = build_test_font()

    def test_table_is_sorted_with_space_first(self):
        table, dropped = measure_font(self.font, SIZE, CharacterSet(RAMP))
        self.assertEqual(dropped, ())
        self.assertEqual("".join(table.characters), RAMP)
        self.assertEqual(list(table.coverages), sorted(table.coverages))
        self.assertEqual(table.nearest(0.0), " ")
        self.assertEqual(table.coverages[0], 0.0)

    def test_inkiest_glyph_is_normalised_to_one(self):
        table, _ = measure_font(self.font, SIZE, CharacterSet(RAMP))
        self.assertEqual(table.coverages[-1], 1.0)
        self.assertEqual(table.nearest(1.0), "@")
        for cov in table.coverages:
            self.assertGreaterEqual(cov, 0.0)
            self.assertLessEqual(cov, 1.0)

    def test_cell_geometry_follows_advance_and_line_height(self):
        table, _ = measure_font(self.font, SIZE, CharacterSet(RAMP))
        width, height = table.geometry()
        self.assertAlmostEqual(width, 30.0, delta=1.0)
        self.assertAlmostEqual(height, 50.0, delta=1.0)

    def test_missing_glyphs_are_dropped_and_reported(self):
        table, dropped = measure_font(self.font, SIZE, CharacterSet(" x.@"))
        self.assertEqual(dropped, ("x",))
        self.assertNotIn("x", table.characters)
        self.assertLessEqual(len(table), 4)

    def test_repeatable(self):
        first, _ = measure_font(self.font, SIZE, printable_ascii())
        second, _ = measure_font(self.font, SIZE, printable_ascii())
        self.assertEqual(first, second)

    def test_junk_bytes_are_a_parse_error(self):
        with self.assertRaises(FontParseError):
            measure_font(b"definitely not a font", SIZE, printable_ascii())

    def test_corrupt_outlines_are_a_parse_error(self):
        with self.assertRaises(FontParseError) as ctx:
            measure_font(corrupt_glyf_font(), SIZE, CharacterSet(RAMP))
        self.assertNotIsInstance(ctx.exception, NoUsableGlyphs)
        self.assertIsInstance(ctx.exception.__cause__, (OSError, ValueError))

    def test_non_positive_size_is_invalid(self):
        for size in (0, -4):
            with self.subTest(size=size):
                with self.assertRaises(InvalidParameter):
                    measure_font(self.font, size, printable_ascii())

    def test_no_covered_characters(self):
        with self.assertRaises(NoUsableGlyphs):
            measure_font(self.font, SIZE, CharacterSet("xyz"))

    def test_only_blank_glyphs(self):
        with self.assertRaises(NoUsableGlyphs):
            measure_font(self.font, SIZE, CharacterSet(" "))


class MeasureFontFileTest(unittest.TestCase):
    def test_reads_from_disk(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "fixture.ttf")
            with open(path, "wb") as f:
                f.write(build_test_font())
            table, _ = measure_font_file(path, SIZE, CharacterSet(RAMP))
        self.assertEqual(len(table), len(RAMP))

    def test_missing_file(self):
        with self.assertRaises(StorageError):
            measure_font_file("/nonexistent/font.ttf", SIZE, printable_ascii())


if __name__ == "__main__":
    unittest.main()
