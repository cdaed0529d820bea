import numpy as np
import settings
from image_loader import load_image
from image_sampler import sample_grid

MAX_COLS = getattr(settings, 'ASCII_MAX_COLS', None)
NEWLINE = "\n"


def render_lines(grid, table, invert=False):
    """
    Map every cell of an intensity grid to a glyph, row by row.

    invert=False: dark text on a light background (ink follows darkness).
    invert=True:  light text on a dark background, via nearest_inverted().
    """
    grid = np.asarray(grid, dtype=np.float64)
    if grid.ndim != 2:
        raise ValueError(f"Intensity grid must be 2-D, got shape {grid.shape}")
    char_array = table.lookup(grid, invert=invert)
    return ["".join(row) for row in char_array.tolist()]


def render_text(grid, table, invert=False):
    """Newline-terminated lines as a single string."""
    return "".join(line + NEWLINE for line in render_lines(grid, table, invert))


def image_to_ascii(data, table, invert=False, decoder=None, max_cols=MAX_COLS):
    """
    Full pipeline for one image: decode -> sample -> render.
    """
    # --- 1. DECODE ---
    image = load_image(data, decoder)

    # --- 2. SAMPLE (grid shaped like the glyph cell) ---
    cell_w, cell_h = table.geometry()
    grid = sample_grid(image, cell_w, cell_h, max_cols=max_cols)

    # --- 3. MAP AND COMPOSE ---
    return render_text(grid, table, invert=invert)
