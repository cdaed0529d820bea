"""
librarify.py

Build a font catalog file for the service.

Reads a manifest (stdin by default), one font per line:

    DejaVu Sans Mono, 8 9 10 12 16
    Terminus, /usr/share/fonts/terminus/ter-u12n.otb, 12 14
    # comments and blank lines are skipped

The first form finds the font file by name (font_locator.py); the second
names the file directly. Every font is measured at every listed pixel
size and the result written as JSON (default fonts.json). Any font or
size that cannot be measured aborts the build and nothing is written.

On success the name <= file mapping is printed so a mismatched font
lookup is easy to spot.
"""
import argparse
import logging
import sys

import settings
from errors import AsciiArtError, InvalidParameter, StorageError
from font_catalog import CatalogEntry, build_catalog, save_catalog
from font_locator import FontLocator
from log_setup import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_OUTFILE = getattr(settings, 'LIBRARIFY_OUTFILE', "fonts.json")


def parse_manifest_line(line):
    """(name, path or None, sizes) from one manifest line."""
    parts = [p.strip() for p in line.split(",")]
    if len(parts) == 2:
        name, path, size_str = parts[0], None, parts[1]
    elif len(parts) == 3:
        name, path, size_str = parts
        if not path:
            raise InvalidParameter("empty font path")
    else:
        raise InvalidParameter("improper input format, expected \"Name, sizes\" or \"Name, path, sizes\"")

    if not name:
        raise InvalidParameter("no valid font name")

    sizes = []
    for token in size_str.split():
        try:
            size = int(token)
        except ValueError:
            raise InvalidParameter(f"bad font size {token!r}") from None
        if size <= 0:
            raise InvalidParameter(f"bad font size {token!r}")
        if size not in sizes:
            sizes.append(size)
    if not sizes:
        raise InvalidParameter("no valid font sizes")
    return name, path, tuple(sizes)


def read_manifest(lines, locator=None):
    """CatalogEntry per manifest line; the first bad line raises, naming its number."""
    locator = locator or FontLocator()
    entries = []
    names = set()
    for line_n, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            name, path, sizes = parse_manifest_line(line)
            if name in names:
                raise InvalidParameter(f"font \"{name}\" listed twice")
            if path is None:
                path = locator.find(name)
        except AsciiArtError as e:
            raise type(e)(f"Error in input line {line_n}: {e}") from e
        names.add(name)
        entries.append(CatalogEntry(name, path, sizes))
    return entries


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="librarify",
        description="Measure fonts and write a font catalog for the ASCII art service.",
    )
    parser.add_argument(
        'outfile',
        nargs='?',
        default=DEFAULT_OUTFILE,
        help=f"catalog file to write (default: '{DEFAULT_OUTFILE}')"
    )
    parser.add_argument(
        '-m', '--manifest',
        help="manifest file (default: read from stdin)"
    )
    parser.add_argument(
        '--prune',
        type=int,
        default=None,
        help="keep only glyphs reachable from N evenly spaced intensities"
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=None,
        help="Number of parallel workers (default: number of CPU cores)"
    )
    parser.add_argument(
        '--no-progress',
        dest='progress',
        action='store_false',
        help="hide the progress bar"
    )
    parser.add_argument(
        '-l', '--log',
        type=str,
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    return parser.parse_args(argv)


def _manifest_lines(path):
    if path is None:
        return sys.stdin.read().splitlines()
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().splitlines()
    except OSError as e:
        raise StorageError(f"Unable to open manifest \"{path}\": {e}") from e


def main(argv=None) -> int:
    args = parse_arguments(argv)
    try:
        setup_logging(args.log)
    except ValueError as e:
        print(e, file=sys.stderr)
        return 1

    if args.prune is not None and args.prune < 2:
        print("--prune needs at least 2 intensity levels", file=sys.stderr)
        return 1

    try:
        entries = read_manifest(_manifest_lines(args.manifest))
        if not entries:
            print("No fonts listed; no output file written.")
            return 1

        logger.info(f"Building catalog of {len(entries)} font(s) -> '{args.outfile}'")
        catalog = build_catalog(entries, prune=args.prune, workers=args.workers,
                                progress=args.progress)
        save_catalog(catalog, args.outfile)
    except AsciiArtError as e:
        print(e, file=sys.stderr)
        return 1

    print()
    for entry in entries:
        print(f"{entry.name} <= \"{entry.path}\"")
    logger.info(f"Wrote {args.outfile}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
