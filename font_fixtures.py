"""
Synthetic fonts and images for the tests.

build_test_font() returns the bytes of a tiny TrueType font whose glyphs
are plain rectangles of known area, so ink coverage is predictable and no
system fonts are needed:

    ' '  no outline
    '.'  100 x 100 units
    '-'  400 x 100
    '+'  three bars, 70 000 units^2 in total
    '#'  400 x 600
    '@'  the whole 600 x 1000 cell

Everything sits in a 600-unit advance with ascent 800 / descent 200 on a
1000-unit em, so at size 50 px the glyph cell is 30 x 50 px.
"""
from io import BytesIO

import numpy as np
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen
from fontTools.ttLib import TTFont
from PIL import Image

from intensity_table import GlyphSample, IntensityTable

UNITS_PER_EM = 1000
ADVANCE = 600
ASCENT = 800
DESCENT = 200
FAMILY = "Fixture Mono"

# (x0, y0, x1, y1) rectangles in font units
SHAPES = {
    " ": [],
    ".": [(250, 0, 350, 100)],
    "-": [(100, 300, 500, 400)],
    "+": [(100, 300, 500, 400), (250, 400, 350, 550), (250, 150, 350, 300)],
    "#": [(100, 0, 500, 600)],
    "@": [(0, -DESCENT, ADVANCE, ASCENT)],
}
GLYPH_NAMES = {
    " ": "space",
    ".": "period",
    "-": "hyphen",
    "+": "plus",
    "#": "numbersign",
    "@": "at",
}
# Ascending ink, as the measured table must come out.
RAMP = " .-+#@"


def _draw(rects):
    pen = TTGlyphPen(None)
    for x0, y0, x1, y1 in rects:
        # clockwise outer contour
        pen.moveTo((x0, y0))
        pen.lineTo((x0, y1))
        pen.lineTo((x1, y1))
        pen.lineTo((x1, y0))
        pen.closePath()
    return pen.glyph()


def build_test_font(chars=RAMP, family=FAMILY, advance=ADVANCE):
    """TrueType bytes holding the rectangle glyphs for `chars`."""
    order = [".notdef"] + [GLYPH_NAMES[ch] for ch in chars]
    shapes = {".notdef": [(50, 0, advance - 50, 700)]}
    shapes.update({GLYPH_NAMES[ch]: SHAPES[ch] for ch in chars})

    fb = FontBuilder(UNITS_PER_EM, isTTF=True)
    fb.setupGlyphOrder(order)
    fb.setupCharacterMap({ord(ch): GLYPH_NAMES[ch] for ch in chars})
    fb.setupGlyf({name: _draw(shapes[name]) for name in order})
    fb.setupHorizontalMetrics({
        name: (advance, min((r[0] for r in shapes[name]), default=0)) for name in order
    })
    fb.setupHorizontalHeader(ascent=ASCENT, descent=-DESCENT)
    fb.setupNameTable({
        "familyName": family,
        "styleName": "Regular",
        "fullName": f"{family} Regular",
        "psName": family.replace(" ", "") + "-Regular",
    })
    fb.setupOS2(sTypoAscender=ASCENT, sTypoDescender=-DESCENT, sTypoLineGap=0,
                usWinAscent=ASCENT, usWinDescent=DESCENT)
    fb.setupPost()

    buf = BytesIO()
    fb.save(buf)
    return buf.getvalue()


def write_test_font(path, **kwargs):
    data = build_test_font(**kwargs)
    with open(path, "wb") as f:
        f.write(data)
    return path


def table_from_samples(pairs, width=10.0, height=20.0):
    """IntensityTable from [(char, coverage), ...] without measuring a font."""
    return IntensityTable([GlyphSample(ch, cov) for ch, cov in pairs], width, height)


def png_bytes(pixels):
    """Encode a numpy array (H x W gray, or H x W x 3/4) as PNG."""
    arr = np.asarray(pixels, dtype=np.uint8)
    buf = BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


def solid_png(width, height, value):
    return png_bytes(np.full((height, width), value, dtype=np.uint8))


def solid_png16(width, height, value):
    """16-bit grayscale PNG; Pillow opens it in one of its wide integer modes."""
    arr = np.full((height, width), value, dtype=np.uint16)
    buf = BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


def corrupt_glyf_font(chars=RAMP):
    """Fixture font whose outline data is overwritten with junk; the tables still index."""
    data = bytearray(build_test_font(chars))
    entry = TTFont(BytesIO(bytes(data))).reader.tables["glyf"]
    data[entry.offset:entry.offset + entry.length] = b"\x7f" * entry.length
    return bytes(data)
