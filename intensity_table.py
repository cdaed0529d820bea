from bisect import bisect_left
from dataclasses import dataclass

import numpy as np

from errors import CatalogFormatError


@dataclass(frozen=True)
class GlyphSample:
    """One measured glyph: the character and its ink coverage in [0, 1]."""
    char: str
    coverage: float


class IntensityTable:
    """
    Coverage -> character lookup for one font at one pixel size.

    Samples are kept sorted ascending by coverage. The sort is stable, so
    glyphs with equal coverage stay in the order they were measured in, and
    lookups landing on such a run always return its first member.

    The table also remembers the glyph cell geometry (advance width and
    line height in pixels) so the sampler can shape its grid to match.
    """

    def __init__(self, samples, width, height):
        samples = sorted(samples, key=lambda s: s.coverage)
        if not samples:
            raise ValueError("IntensityTable needs at least one glyph")
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid cell geometry {width}x{height}")

        chars = tuple(s.char for s in samples)
        if len(set(chars)) != len(chars):
            raise ValueError("IntensityTable characters must be distinct")

        self._samples = tuple(samples)
        self._chars = chars
        self._coverage = tuple(float(s.coverage) for s in samples)
        self._coverage_arr = np.asarray(self._coverage, dtype=np.float64)
        self._coverage_arr.flags.writeable = False
        self._char_arr = np.asarray(chars)
        self._width = float(width)
        self._height = float(height)

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------
    @property
    def samples(self):
        return self._samples

    @property
    def characters(self):
        return self._chars

    @property
    def coverages(self):
        return self._coverage

    @property
    def width(self):
        return self._width

    @property
    def height(self):
        return self._height

    @property
    def cell_aspect(self):
        """Glyph cell width divided by height."""
        return self._width / self._height

    def geometry(self):
        return self._width, self._height

    def __len__(self):
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    def __eq__(self, other):
        if not isinstance(other, IntensityTable):
            return NotImplemented
        return (self._samples == other._samples
                and self.geometry() == other.geometry())

    def __hash__(self):
        return hash((self._samples, self.geometry()))

    def __repr__(self):
        ramp = "".join(self._chars)
        return (f"IntensityTable({len(self)} glyphs, "
                f"{self._width:g}x{self._height:g}px, ramp={ramp!r})")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def _index(self, x):
        cov = self._coverage
        x = min(max(float(x), 0.0), 1.0)
        i = bisect_left(cov, x)
        if i == 0:
            j = 0
        elif i == len(cov):
            j = i - 1
        elif x - cov[i - 1] <= cov[i] - x:
            j = i - 1
        else:
            j = i
        # First glyph of a run of equal coverage.
        return bisect_left(cov, cov[j])

    def nearest(self, x):
        """
        Character whose coverage is closest to `x`.

        `x` is clamped to [0, 1]. When `x` sits exactly halfway between two
        neighbouring coverages the lower one wins.
        """
        return self._chars[self._index(x)]

    def nearest_inverted(self, x):
        """nearest(1 - x): light text on a dark background."""
        return self.nearest(1.0 - float(x))

    def lookup(self, values, invert=False):
        """
        Vectorised nearest()/nearest_inverted() over an array of values.

        Returns an array of characters with the same shape as `values`.
        """
        v = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
        if invert:
            v = 1.0 - v

        cov = self._coverage_arr
        n = len(cov)
        i = np.searchsorted(cov, v, side="left")
        lo = np.clip(i - 1, 0, n - 1)
        hi = np.clip(i, 0, n - 1)
        pick_lo = (i == n) | ((i > 0) & ((v - cov[lo]) <= (cov[hi] - v)))
        j = np.where(pick_lo, lo, hi)
        j = np.searchsorted(cov, cov[j], side="left")
        return self._char_arr[j]

    def pruned(self, n):
        """
        Copy holding only the glyphs reachable from `n` evenly spaced
        intensities between 0 and 1.

        Clusters of near-identical glyphs (`O`/`0`, `l`/`I`/`|`) mostly
        collapse to one member once the input has a fixed number of levels.
        """
        if n < 2:
            raise ValueError("prune needs at least two intensity levels")
        reachable = {self._index(k / (n - 1)) for k in range(n)}
        keep = [s for idx, s in enumerate(self._samples) if idx in reachable]
        return IntensityTable(keep, self._width, self._height)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self):
        return {
            "width": self._width,
            "height": self._height,
            "glyphs": [[s.char, s.coverage] for s in self._samples],
        }

    @classmethod
    def from_dict(cls, data):
        try:
            width = float(data["width"])
            height = float(data["height"])
            glyphs = data["glyphs"]
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogFormatError(f"Bad intensity table: {e!r}") from e

        if not isinstance(glyphs, list) or not glyphs:
            raise CatalogFormatError("Intensity table has no glyphs")

        samples = []
        for entry in glyphs:
            if (not isinstance(entry, (list, tuple)) or len(entry) != 2
                    or not isinstance(entry[0], str) or len(entry[0]) != 1
                    or isinstance(entry[1], bool)
                    or not isinstance(entry[1], (int, float))
                    or not 0.0 <= entry[1] <= 1.0):
                raise CatalogFormatError(f"Bad glyph entry: {entry!r}")
            samples.append(GlyphSample(entry[0], float(entry[1])))

        try:
            return cls(samples, width, height)
        except ValueError as e:
            raise CatalogFormatError(str(e)) from e
