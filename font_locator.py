"""
font_locator.py

Resolves a font name to a font file. Three ways in, tried in order:

  1. the name is a path to an existing file;
  2. the name is a monospace alias ("mono") -> first existing candidate path;
  3. a case-insensitive match on family / full name / file stem among the
     font files under the configured directories.
"""
import logging
import os
import threading

from fontTools.ttLib import TTFont

import settings
from errors import StorageError, UnknownFontOrSize

logger = logging.getLogger(__name__)

NAME_IDS = (1, 4, 16)  # family, full name, typographic family


def _font_names(path):
    names = {os.path.splitext(os.path.basename(path))[0].lower()}
    try:
        tt = TTFont(path, fontNumber=0, lazy=True)
        try:
            for record in tt["name"].names:
                if record.nameID in NAME_IDS:
                    names.add(record.toUnicode().strip().lower())
        finally:
            tt.close()
    except Exception as e:
        logger.debug(f"Skipping unreadable font {path}: {e}")
    return names


class FontLocator:
    def __init__(self, font_dirs=None, mono_candidates=None, aliases=None, extensions=None):
        self.font_dirs = tuple(font_dirs if font_dirs is not None
                               else getattr(settings, 'FONT_DIRS', ()))
        self.mono_candidates = tuple(mono_candidates if mono_candidates is not None
                                     else getattr(settings, 'MONO_FONT_CANDIDATES', ()))
        self.aliases = tuple(a.lower() for a in (aliases if aliases is not None
                                                 else getattr(settings, 'MONO_ALIASES', ())))
        self.extensions = tuple(extensions or getattr(settings, 'FONT_EXTENSIONS', (".ttf", ".otf")))
        self._index = None
        self._lock = threading.Lock()

    def _font_files(self):
        for font_dir in self.font_dirs:
            root_dir = os.path.expanduser(font_dir)
            if not os.path.isdir(root_dir):
                continue
            for root, _, files in os.walk(root_dir):
                for fname in sorted(files):
                    if fname.lower().endswith(self.extensions):
                        yield os.path.join(root, fname)

    def _get_index(self):
        with self._lock:
            if self._index is None:
                index = {}
                for path in sorted(self._font_files()):
                    for name in _font_names(path):
                        index.setdefault(name, path)
                self._index = index
                logger.debug(f"Indexed {len(index)} font names under {self.font_dirs}")
            return self._index

    def find(self, name):
        """Path of the font file for `name`; UnknownFontOrSize if none matches."""
        if not name or not name.strip():
            raise UnknownFontOrSize("No font name given.")
        name = name.strip()

        if os.path.isfile(name):
            return name

        if name.lower() in self.aliases:
            for path in self.mono_candidates:
                if os.path.isfile(path):
                    return path

        path = self._get_index().get(name.lower())
        if path is None:
            raise UnknownFontOrSize(f"Unable to find matching font file for font \"{name}\".")
        return path

    def read(self, name):
        path = self.find(name)
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"Unable to open font file \"{path}\": {e}") from e
