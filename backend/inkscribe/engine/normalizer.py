"""Recognizer input preparation: tight crop, centered square, preview grids."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from inkscribe.engine.config import NormalizeConfig, PreviewConfig
from inkscribe.engine.types import BoundingBox
from inkscribe.utils.raster import composite_on_white, ink_mask, white_canvas


def tight_center_square(
    src_white_bg: Image.Image | NDArray,
    ink_threshold: int = 245,
    inner_pad_px: int = 8,
    outer_margin_px: int = 24,
    min_side_px: int = 96,
) -> NDArray[np.uint8]:
    """Crop to the ink, pad, and center it on a white square.

    Side = max(min_side_px, longest content side + 2 * outer_margin_px).
    A raster without ink yields a blank ``min_side_px`` square.
    """
    rgb = composite_on_white(src_white_bg)
    mask = ink_mask(rgb, ink_threshold)

    rows = np.flatnonzero(mask.any(axis=1))
    cols = np.flatnonzero(mask.any(axis=0))
    if len(rows) == 0 or len(cols) == 0:
        return white_canvas(min_side_px, min_side_px)

    top = int(rows[0])
    bottom = int(rows[-1]) + 1
    left = int(cols[0])
    right = int(cols[-1]) + 1

    # Inner pad is white space around the ink, not neighbouring pixels
    crop = rgb[top:bottom, left:right]
    ch = crop.shape[0] + 2 * inner_pad_px
    cw = crop.shape[1] + 2 * inner_pad_px
    padded = white_canvas(cw, ch)
    padded[inner_pad_px : inner_pad_px + crop.shape[0], inner_pad_px : inner_pad_px + crop.shape[1]] = crop

    side = max(min_side_px, max(ch, cw) + 2 * outer_margin_px)
    out = white_canvas(side, side)
    oy = (side - ch) // 2
    ox = (side - cw) // 2
    out[oy : oy + ch, ox : ox + cw] = padded
    return out


def normalize(src_white_bg: Image.Image | NDArray, cfg: NormalizeConfig) -> NDArray[np.uint8]:
    return tight_center_square(
        src_white_bg,
        ink_threshold=cfg.ink_threshold,
        inner_pad_px=cfg.inner_pad_px,
        outer_margin_px=cfg.outer_margin_px,
        min_side_px=cfg.min_side_px,
    )


def crop_with_pad(src: NDArray, box: BoundingBox, pad: int) -> NDArray:
    """Crop ``box`` grown by ``pad`` on every side, clamped to the raster."""
    h, w = src.shape[:2]
    left = max(box.left - pad, 0)
    top = max(box.top - pad, 0)
    right = min(box.right + pad, w)
    bottom = min(box.bottom + pad, h)
    right = max(right, left + 1)
    bottom = max(bottom, top + 1)
    return src[top:bottom, left:right].copy()


def compose_grid(
    images: list[NDArray],
    cfg: PreviewConfig | None = None,
) -> NDArray[np.uint8] | None:
    """Tile normalized glyphs into one preview image (white background)."""
    if not images:
        return None
    cfg = cfg or PreviewConfig()
    cols = min(cfg.max_cols, max(1, len(images)))
    rows = math.ceil(len(images) / cols)
    cell = cfg.cell_size_px
    pad = cfg.pad_px

    width = cols * cell + (cols + 1) * pad
    height = rows * cell + (rows + 1) * pad
    sheet = Image.new("RGB", (width, height), (255, 255, 255))

    for i, arr in enumerate(images):
        tile = Image.fromarray(composite_on_white(arr)).resize((cell, cell), Image.Resampling.BILINEAR)
        r, c = divmod(i, cols)
        sheet.paste(tile, (pad + c * (cell + pad), pad + r * (cell + pad)))

    return np.array(sheet, dtype=np.uint8)
