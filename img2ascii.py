"""
img2ascii.py

Command-line filter: image in, text out.

    python img2ascii.py < photo.jpg
    python img2ascii.py -s photo.jpg -d photo.txt -f "DejaVu Sans Mono" -p 16

The font is found by name among the installed fonts (see font_locator.py)
and measured on the spot, unless --catalog points at a librarify.py file
that already holds that font at that size.
"""
import argparse
import logging
import sys

import settings
from ascii_converter import image_to_ascii
from errors import AsciiArtError, StorageError
from font_catalog import load_catalog
from font_locator import FontLocator
from glyph_coverage import measure_font, printable_ascii
from image_loader import get_decoder
from log_setup import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_FONT = getattr(settings, 'DEFAULT_FONT', "mono")
DEFAULT_PIXEL_SIZE = getattr(settings, 'DEFAULT_PIXEL_SIZE', 12)


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="img2ascii",
        description="Command-line utility to turn image files into ASCII art.",
    )
    parser.add_argument(
        '-s', '--source',
        help="image path (default: read from stdin)"
    )
    parser.add_argument(
        '-d', '--dest',
        help="output path (default: write to stdout)"
    )
    parser.add_argument(
        '-f', '--font',
        default=DEFAULT_FONT,
        help=f"font to use (default: {DEFAULT_FONT})"
    )
    parser.add_argument(
        '-p', '--pixels',
        type=float,
        default=float(DEFAULT_PIXEL_SIZE),
        help=f"font size in pixels (default: {DEFAULT_PIXEL_SIZE})"
    )
    parser.add_argument(
        '-i', '--invert',
        action="store_true",
        help="light text on a dark background"
    )
    parser.add_argument(
        '--catalog',
        help="font catalog to take the glyph table from when it has this font and size"
    )
    parser.add_argument(
        '-w', '--width',
        type=int,
        default=getattr(settings, 'ASCII_MAX_COLS', None),
        help="maximum number of columns"
    )
    parser.add_argument(
        '--decoder',
        choices=["pillow", "opencv"],
        default="pillow",
        help="image decoder (default: pillow)"
    )
    parser.add_argument(
        '-l', '--log',
        type=str,
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    return parser.parse_args(argv)


def select_table(font, pixels, catalog_path=None, locator=None, charset=None):
    """Glyph table for `font` at `pixels`: from the catalog if it has it, else measured."""
    if catalog_path:
        catalog = load_catalog(catalog_path)
        size = int(pixels) if float(pixels).is_integer() else None
        if font in catalog and size in catalog[font]:
            logger.info(f"Using catalog table for \"{font}\" at size {size}")
            return catalog.table(font, size)
        logger.info(f"\"{font}\" at size {pixels:g} not in {catalog_path}; measuring font")

    locator = locator or FontLocator()
    path = locator.find(font)
    logger.info(f"Font \"{font}\" -> {path}")
    font_bytes = locator.read(path)
    table, dropped = measure_font(font_bytes, pixels, charset or printable_ascii())
    if dropped:
        logger.warning(f"Font \"{font}\" has no glyph for {''.join(dropped)!r}")
    return table


def read_source(source):
    if source is None:
        return sys.stdin.buffer.read()
    try:
        with open(source, "rb") as f:
            return f.read()
    except OSError as e:
        raise StorageError(f"Unable to open image \"{source}\": {e}") from e


def write_dest(dest, text):
    if dest is None:
        sys.stdout.write(text)
        sys.stdout.flush()
        return
    try:
        with open(dest, "w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise StorageError(f"Unable to write \"{dest}\": {e}") from e


def main(argv=None) -> int:
    args = parse_arguments(argv)
    try:
        setup_logging(args.log)
    except ValueError as e:
        print(e, file=sys.stderr)
        return 1

    try:
        table = select_table(args.font, args.pixels, catalog_path=args.catalog)
        data = read_source(args.source)
        text = image_to_ascii(data, table, invert=args.invert,
                              decoder=get_decoder(args.decoder), max_cols=args.width)
        write_dest(args.dest, text)
    except AsciiArtError as e:
        print(e, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
