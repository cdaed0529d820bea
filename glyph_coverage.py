"""
glyph_coverage.py

Measures how much "ink" each glyph of a font puts on the page at a given
pixel size, and turns the measurements into an IntensityTable.

The font is opened twice: fontTools reads the character map and the
vertical metrics, Pillow's FreeType binding rasterises the glyphs.
"""
import logging
from collections.abc import Sequence
from io import BytesIO

import numpy as np
from fontTools.ttLib import TTFont
from PIL import Image, ImageDraw, ImageFont

from errors import FontParseError, InvalidParameter, NoUsableGlyphs, StorageError
from intensity_table import GlyphSample, IntensityTable

logger = logging.getLogger(__name__)

SPACE = " "
PRINTABLE_ASCII = range(0x20, 0x7f)


class CharacterSet(Sequence):
    """Ordered, non-empty set of distinct single characters."""

    def __init__(self, chars):
        chars = tuple(chars)
        if not chars:
            raise InvalidParameter("Character set is empty.")

        seen = set()
        for ch in chars:
            if not isinstance(ch, str) or len(ch) != 1:
                raise InvalidParameter(f"Not a single character: {ch!r}")
            if ch in seen:
                raise InvalidParameter(f"Duplicate character {ch!r} in character set.")
            seen.add(ch)
        self._chars = chars

    def __getitem__(self, index):
        return self._chars[index]

    def __len__(self):
        return len(self._chars)

    def __repr__(self):
        return f"CharacterSet({''.join(self._chars)!r})"


def printable_ascii():
    """
    Space through tilde. Almost every font aimed at Latin scripts covers
    all of these, and the space is the natural "no ink" glyph.
    """
    return CharacterSet(chr(n) for n in PRINTABLE_ASCII)


def _open_font(font_bytes, size):
    try:
        tt = TTFont(BytesIO(font_bytes), fontNumber=0, lazy=True)
        cmap = tt.getBestCmap() or {}
        units_per_em = tt["head"].unitsPerEm
        line_gap = tt["hhea"].lineGap if "hhea" in tt else 0
    except Exception as e:
        raise FontParseError(
            f"Supplied data is not a valid or recognizable font ({e})."
        ) from e

    try:
        face = ImageFont.truetype(BytesIO(font_bytes), size)
    except (OSError, ValueError) as e:
        raise FontParseError(f"Unable to rasterize font: {e}") from e

    line_gap_px = max(0, line_gap) * size / units_per_em
    return cmap, face, line_gap_px


def _ink(face, ch):
    """Total alpha of the rendered glyph, in whole-pixel units."""
    x0, y0, x1, y1 = face.getbbox(ch)
    w, h = x1 - x0, y1 - y0
    if w <= 0 or h <= 0:
        return 0.0
    canvas = Image.new("L", (w, h), 0)
    ImageDraw.Draw(canvas).text((-x0, -y0), ch, fill=255, font=face)
    return float(np.asarray(canvas, dtype=np.float64).sum()) / 255.0


def measure_font(font_bytes, size, charset):
    """
    Build the IntensityTable for `font_bytes` rendered at `size` pixels.

    Returns (table, dropped) where `dropped` lists, in character-set order,
    the requested characters the font has no glyph for. Those are left out
    of the table rather than guessed at.

    Coverage is the glyph's ink divided by the cell area (widest advance x
    line height), then scaled so the inkiest glyph sits at 1.0.
    """
    if size is None or size <= 0:
        raise InvalidParameter(f"Font size must be positive, got {size}.")
    if not isinstance(charset, CharacterSet):
        charset = CharacterSet(charset)

    cmap, face, line_gap_px = _open_font(font_bytes, size)

    accepted = []
    dropped = []
    for ch in charset:
        if ord(ch) not in cmap:
            dropped.append(ch)
            continue
        try:
            accepted.append((ch, _ink(face, ch), face.getlength(ch)))
        except (OSError, ValueError) as e:
            # outline tables are only read by FreeType when a glyph is drawn
            raise FontParseError(f"Unable to render glyph {ch!r}: {e}") from e

    if not accepted:
        raise NoUsableGlyphs("Font contains no glyphs for the requested characters.")

    ascent, descent = face.getmetrics()
    height = ascent + descent + line_gap_px
    width = max(adv for _, _, adv in accepted)
    if width <= 0 or height <= 0:
        raise NoUsableGlyphs(f"Font reports an empty glyph cell ({width}x{height}).")

    area = width * height
    raw = [(ch, min(1.0, ink / area)) for ch, ink, _ in accepted]
    top = max(cov for _, cov in raw)
    if top <= 0.0:
        raise NoUsableGlyphs("None of the requested glyphs put any ink on the page.")

    samples = [GlyphSample(ch, cov / top) for ch, cov in raw]
    table = IntensityTable(samples, width, height)

    if dropped:
        logger.debug(f"{len(dropped)} character(s) missing from font at {size}px: {''.join(dropped)!r}")
    return table, tuple(dropped)


def measure_font_file(path, size, charset):
    try:
        with open(path, "rb") as f:
            font_bytes = f.read()
    except OSError as e:
        raise StorageError(f"Unable to open font file \"{path}\": {e}") from e
    return measure_font(font_bytes, size, charset)
