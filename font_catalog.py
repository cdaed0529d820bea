"""
font_catalog.py

The font catalog: font name -> pixel size -> IntensityTable.

A catalog is built once (see librarify.py), written to a JSON file, and
loaded whole by the service before it accepts any request. After
construction it is read-only: every level is a MappingProxyType view, so
request threads can share one instance without locking.

File layout (version 1):

    {
      "fonts": {
        "DejaVu Sans Mono": [
          {"size": 8,  "width": 5.0, "height": 10.0, "glyphs": [[" ", 0.0], ...]},
          {"size": 12, ...}
        ]
      },
      "version": 1
    }

Font names are sorted and sizes ascend numerically, and nothing
time-dependent is written, so equal inputs produce byte-identical files.
"""
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

from tqdm import tqdm

from errors import (AsciiArtError, CatalogBuildError, CatalogFormatError,
                    InvalidParameter, StorageError, UnknownFontOrSize)
from glyph_coverage import measure_font, printable_ascii
from intensity_table import IntensityTable

logger = logging.getLogger(__name__)

CATALOG_VERSION = 1


def _as_size(size):
    """Integral positive size as int, else None."""
    if isinstance(size, bool):
        return None
    if isinstance(size, int):
        return size if size > 0 else None
    if isinstance(size, float) and size.is_integer() and size > 0:
        return int(size)
    return None


class FontCatalog(Mapping):
    """Read-only mapping of font name -> {size: IntensityTable}."""

    def __init__(self, fonts):
        frozen = {}
        for name, by_size in fonts.items():
            if not isinstance(name, str) or not name.strip():
                raise ValueError(f"Invalid font name: {name!r}")
            sized = {}
            for size, table in by_size.items():
                n = _as_size(size)
                if n is None:
                    raise ValueError(f"Invalid size {size!r} for font \"{name}\"")
                if not isinstance(table, IntensityTable):
                    raise TypeError(f"Expected IntensityTable for \"{name}\" @ {size}")
                sized[n] = table
            if not sized:
                raise ValueError(f"Font \"{name}\" has no sizes")
            frozen[name] = MappingProxyType(dict(sorted(sized.items())))
        self._fonts = MappingProxyType(dict(sorted(frozen.items())))

    def __getitem__(self, name):
        return self._fonts[name]

    def __iter__(self):
        return iter(self._fonts)

    def __len__(self):
        return len(self._fonts)

    def __repr__(self):
        return f"FontCatalog({self.listing()!r})"

    def sizes(self, name):
        try:
            return tuple(self._fonts[name])
        except KeyError:
            raise UnknownFontOrSize(f"No font data matching \"{name}\".") from None

    def table(self, name, size):
        by_size = self._fonts.get(name)
        if by_size is None:
            raise UnknownFontOrSize(f"No font data matching \"{name}\".")
        n = _as_size(size)
        if n is None or n not in by_size:
            raise UnknownFontOrSize(f"No data for font \"{name}\" at size \"{size}\".")
        return by_size[n]

    def listing(self):
        """Font name -> sizes ascending, the body of a `list` response."""
        return {name: list(by_size) for name, by_size in self._fonts.items()}


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------
def catalog_to_dict(catalog):
    fonts = {}
    for name, by_size in catalog.items():
        fonts[name] = [dict(size=size, **table.to_dict()) for size, table in by_size.items()]
    return {"version": CATALOG_VERSION, "fonts": fonts}


def dump_catalog(catalog):
    return json.dumps(catalog_to_dict(catalog), sort_keys=True, indent=1, ensure_ascii=False) + "\n"


def _legacy_table(data):
    # Older libraries stored {"values": [[char, cov], ...], "width", "height", ...}
    # keyed by size string, without the version wrapper.
    try:
        return IntensityTable.from_dict({
            "width": data["width"],
            "height": data["height"],
            "glyphs": data["values"],
        })
    except (KeyError, TypeError) as e:
        raise CatalogFormatError(f"Bad legacy font entry: {e!r}") from e


def catalog_from_dict(data):
    if not isinstance(data, dict):
        raise CatalogFormatError("Catalog must be a JSON object.")

    fonts = {}
    if "version" in data:
        if data["version"] != CATALOG_VERSION:
            raise CatalogFormatError(f"Unsupported catalog version: {data['version']!r}")
        raw_fonts = data.get("fonts")
        if not isinstance(raw_fonts, dict):
            raise CatalogFormatError("Catalog \"fonts\" must be an object.")
        for name, entries in raw_fonts.items():
            if not isinstance(entries, list):
                raise CatalogFormatError(f"Font \"{name}\" must map to a list of sizes.")
            by_size = {}
            for entry in entries:
                if not isinstance(entry, dict):
                    raise CatalogFormatError(f"Bad size entry for \"{name}\": {entry!r}")
                size = _as_size(entry.get("size"))
                if size is None:
                    raise CatalogFormatError(f"Bad size for \"{name}\": {entry.get('size')!r}")
                if size in by_size:
                    raise CatalogFormatError(f"Duplicate size {size} for \"{name}\".")
                by_size[size] = IntensityTable.from_dict(entry)
            fonts[name] = by_size
    else:
        for name, by_size_raw in data.items():
            if not isinstance(by_size_raw, dict):
                raise CatalogFormatError(f"Font \"{name}\" must map sizes to tables.")
            by_size = {}
            for size_str, table_data in by_size_raw.items():
                try:
                    size = _as_size(int(size_str))
                except (TypeError, ValueError):
                    size = None
                if size is None:
                    raise CatalogFormatError(f"Bad size for \"{name}\": {size_str!r}")
                by_size[size] = _legacy_table(table_data)
            fonts[name] = by_size

    try:
        return FontCatalog(fonts)
    except (TypeError, ValueError) as e:
        raise CatalogFormatError(str(e)) from e


def parse_catalog(text):
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CatalogFormatError(f"Error deserializing font lib: {e}") from e
    return catalog_from_dict(data)


def load_catalog(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise StorageError(f"Unable to open font lib \"{path}\": {e}") from e
    catalog = parse_catalog(text)
    logger.info(f"Loaded font catalog {path}: {len(catalog)} font(s)")
    return catalog


def save_catalog(catalog, path):
    """Write atomically: a reader never sees a half-written catalog."""
    text = dump_catalog(catalog)
    directory = os.path.dirname(os.path.abspath(path))
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".catalog-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, path)
        except BaseException:
            os.unlink(tmp_path)
            raise
    except OSError as e:
        raise StorageError(f"Unable to write font lib \"{path}\": {e}") from e


# ----------------------------------------------------------------------
# Building
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class CatalogEntry:
    """One font to measure: catalog name, font file, pixel sizes."""
    name: str
    path: str
    sizes: tuple


def _read_font(entry):
    try:
        with open(entry.path, "rb") as f:
            return f.read()
    except OSError as e:
        raise CatalogBuildError(entry.name, entry.path, entry.sizes[0] if entry.sizes else None,
                                StorageError(f"Unable to open file \"{entry.path}\": {e}")) from e


def build_catalog(entries, charset=None, prune: Optional[int] = None,
                  workers: Optional[int] = None, progress: bool = True):
    """
    Measure every (font, size) pair and assemble a FontCatalog.

    Any pair that cannot be measured aborts the whole build with a
    CatalogBuildError naming it; the first failure in input order is the
    one reported. Characters a font lacks are only logged.
    """
    charset = charset if charset is not None else printable_ascii()
    entries = list(entries)

    jobs = []
    seen = set()
    for entry in entries:
        if not entry.sizes:
            raise InvalidParameter(f"Font \"{entry.name}\" has no sizes to build.")
        for size in entry.sizes:
            n = _as_size(size)
            if n is None:
                raise InvalidParameter(f"Font \"{entry.name}\": invalid size {size!r}.")
            if (entry.name, n) in seen:
                raise InvalidParameter(f"Font \"{entry.name}\" at size {n} listed twice.")
            seen.add((entry.name, n))
            jobs.append((entry, n))

    font_data = {}
    for entry in entries:
        if entry.path not in font_data:
            font_data[entry.path] = _read_font(entry)

    fonts = {}
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(measure_font, font_data[entry.path], size, charset)
                   for entry, size in jobs]
        try:
            for (entry, size), fut in tqdm(zip(jobs, futures), total=len(jobs),
                                           desc="Measuring", unit="size", disable=not progress):
                try:
                    table, dropped = fut.result()
                except AsciiArtError as e:
                    raise CatalogBuildError(entry.name, entry.path, size, e) from e

                if dropped:
                    logger.warning(f"\"{entry.name}\" at size {size}: no coverage of {''.join(dropped)!r}")
                if prune:
                    table = table.pruned(prune)
                fonts.setdefault(entry.name, {})[size] = table
        except BaseException:
            for fut in futures:
                fut.cancel()
            raise

    return FontCatalog(fonts)

