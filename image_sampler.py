import numpy as np

from errors import InvalidParameter


def grid_shape(image_w, image_h, cell_w, cell_h, max_cols=None):
    """
    Number of (cols, rows) of text needed to cover an image_w x image_h
    image with glyph cells of cell_w x cell_h pixels.

    One cell per glyph-sized patch of the source, so the rendered text comes
    out roughly the size of the original image and
    cols / rows ~= (image_w / image_h) / (cell_w / cell_h).
    """
    if cell_w <= 0 or cell_h <= 0:
        raise InvalidParameter(f"Glyph cell must have positive size, got {cell_w}x{cell_h}.")
    if image_w <= 0 or image_h <= 0:
        raise InvalidParameter(f"Image must have positive size, got {image_w}x{image_h}.")

    cols_f = image_w / cell_w
    rows_f = image_h / cell_h

    # Optional width cap; both axes shrink together to keep the proportions.
    if max_cols is not None:
        if max_cols < 1:
            raise InvalidParameter(f"Column limit must be at least 1, got {max_cols}.")
        if cols_f > max_cols:
            scale = max_cols / cols_f
            cols_f = float(max_cols)
            rows_f *= scale

    # At least one cell, at most one cell per source pixel.
    cols = min(max(1, int(round(cols_f))), image_w)
    rows = min(max(1, int(round(rows_f))), image_h)
    return cols, rows


def _edges(length, parts):
    return (np.arange(parts + 1, dtype=np.int64) * length) // parts


def cell_means(luminance, cols, rows):
    """
    Mean of each of rows x cols non-overlapping regions of `luminance`.

    Region edges are k * size // parts, so every pixel lands in exactly one
    region and region sizes differ by at most one pixel.
    """
    h, w = luminance.shape
    row_edges = _edges(h, rows)
    col_edges = _edges(w, cols)

    sums = np.add.reduceat(luminance, row_edges[:-1], axis=0)
    sums = np.add.reduceat(sums, col_edges[:-1], axis=1)
    counts = np.outer(np.diff(row_edges), np.diff(col_edges))
    return sums / counts


def sample_grid(image, cell_w, cell_h, max_cols=None):
    """
    Resample a DecodedImage into a grid of cell intensities.

    The value stored per cell is its ink demand, 1 - mean luminance: black
    regions come out at 1.0 and ask for the inkiest glyph, white ones at 0.0.
    """
    cols, rows = grid_shape(image.width, image.height, cell_w, cell_h, max_cols)
    lum = np.asarray(image.luminance, dtype=np.float64)
    grid = 1.0 - cell_means(lum, cols, rows)
    return np.clip(grid, 0.0, 1.0)
