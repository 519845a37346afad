"""Ink segmentation: white-background raster -> left-to-right glyph boxes.

Stages:
1. Binarize (luminance threshold, transparent = background)
2. 4-connected components, small blobs dropped as noise
3. Proximity clustering: components whose padded boxes intersect are one
   glyph (diacritics, multi-stroke characters)
4. Wide boxes are re-examined and cut at valleys of the vertical ink
   projection (neighbouring glyphs that touch)
5. Drop slivers, sort left-to-right, cap the count

Degenerate input never raises; it yields an empty list.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from inkscribe.engine.config import SegConfig
from inkscribe.engine.types import BoundingBox
from inkscribe.utils.components import (
    find_components,
    tighten_to_ink,
    union_find_merge,
    union_find_root,
)
from inkscribe.utils.raster import ink_mask

logger = logging.getLogger(__name__)

# Boxes this small (either side) are never split
_MIN_SPLITTABLE_SIDE = 8
# Cuts stay this far from the box edges
_CUT_EDGE_MARGIN = 2
# Slices narrower than this after cutting are discarded
_MIN_SLICE_WIDTH = 6
# Final boxes must exceed this in both dimensions
_MIN_OUTPUT_SIDE = 2


def segment(
    raster: Image.Image | NDArray,
    config: SegConfig | None = None,
) -> list[BoundingBox]:
    """Return one box per detected glyph, ordered by ``left``."""
    cfg = config or SegConfig()

    mask = ink_mask(raster, cfg.ink_threshold)
    h, w = mask.shape
    if w <= 1 or h <= 1:
        return []

    boxes = [c.box for c in find_components(mask) if c.area >= cfg.min_component_area]
    if not boxes:
        return []

    merged = cluster_boxes(boxes, cfg.cluster_pad_px)

    split: list[BoundingBox] = []
    for box in merged:
        if box.aspect_ratio >= cfg.wide_box_split_ratio:
            split.extend(split_wide_box(mask, box, cfg))
        else:
            split.append(box)

    cleaned = [b for b in split if b.width > _MIN_OUTPUT_SIDE and b.height > _MIN_OUTPUT_SIDE]
    cleaned.sort(key=lambda b: b.left)

    logger.debug(
        "segment: %d components -> %d clusters -> %d boxes",
        len(boxes),
        len(merged),
        len(cleaned),
    )
    return cleaned[: cfg.max_glyphs]


def cluster_boxes(boxes: list[BoundingBox], pad: int) -> list[BoundingBox]:
    """Merge boxes whose ``pad``-expanded extents intersect.

    The merged box is the union of the original (unexpanded) member boxes.
    Pairwise O(n²); component counts stay in the tens.
    """
    n = len(boxes)
    parent = list(range(n))
    rank = [0] * n
    expanded = [b.expanded(pad) for b in boxes]

    for i in range(n):
        for j in range(i + 1, n):
            if expanded[i].intersects(expanded[j]):
                union_find_merge(parent, rank, i, j)

    groups: dict[int, BoundingBox] = {}
    for i, box in enumerate(boxes):
        root = union_find_root(parent, i)
        current = groups.get(root)
        groups[root] = box if current is None else current.union(box)
    return list(groups.values())


def split_wide_box(
    mask: NDArray[np.bool_],
    box: BoundingBox,
    cfg: SegConfig,
) -> list[BoundingBox]:
    """Cut ``box`` at valleys of its column-wise ink count.

    Returns the (raster-clamped) box unchanged when it is too small or no
    valley qualifies.
    """
    h, w = mask.shape
    left = min(max(box.left, 0), w - 1)
    right = min(max(box.right, left + 1), w)
    top = min(max(box.top, 0), h - 1)
    bottom = min(max(box.bottom, top + 1), h)
    clamped = BoundingBox(left, top, right, bottom)

    bw = right - left
    bh = bottom - top
    if bw <= _MIN_SPLITTABLE_SIDE or bh <= _MIN_SPLITTABLE_SIDE:
        return [clamped]

    projection = mask[top:bottom, left:right].sum(axis=0).astype(np.int64)
    smoothed = smooth_projection(projection, cfg.projection_smoothing_window_px)
    threshold = int(int(smoothed.max()) * cfg.valley_fraction)

    candidates = valley_midpoints(smoothed, threshold, cfg.projection_min_gap_px)
    if not candidates:
        return [clamped]

    cuts = sorted({min(max(c, _CUT_EDGE_MARGIN), bw - 1 - _CUT_EDGE_MARGIN) for c in candidates})

    slices: list[BoundingBox] = []
    cur_left = left
    for c in cuts:
        cut_x = left + c
        if cut_x - cur_left >= _MIN_SLICE_WIDTH:
            slices.append(BoundingBox(cur_left, top, cut_x, bottom))
        cur_left = cut_x
    if right - cur_left >= _MIN_SLICE_WIDTH:
        slices.append(BoundingBox(cur_left, top, right, bottom))

    tightened = []
    for s in slices:
        t = tighten_to_ink(mask, s)
        if t is not None:
            tightened.append(t)
    return tightened


def smooth_projection(projection: NDArray[np.int64], half_window: int) -> NDArray[np.int64]:
    """Moving average over ``[x - half_window, x + half_window]``.

    Near the edges only in-range columns are averaged; integer division.
    """
    n = len(projection)
    win = max(1, half_window)
    idx = np.arange(n)
    lo = np.clip(idx - win, 0, n)
    hi = np.clip(idx + win + 1, 0, n)
    csum = np.concatenate(([0], np.cumsum(projection)))
    sums = csum[hi] - csum[lo]
    counts = np.maximum(hi - lo, 1)
    return sums // counts


def valley_midpoints(smoothed: NDArray[np.int64], threshold: int, min_gap: int) -> list[int]:
    """Midpoints of maximal runs with ``value <= threshold`` at least ``min_gap`` long."""
    cuts: list[int] = []
    run_start: int | None = None
    values = smoothed.tolist()
    for x, v in enumerate(values):
        if v <= threshold:
            if run_start is None:
                run_start = x
        elif run_start is not None:
            if x - run_start >= min_gap:
                cuts.append((run_start + x - 1) // 2)
            run_start = None
    if run_start is not None and len(values) - run_start >= min_gap:
        cuts.append((run_start + len(values) - 1) // 2)
    return cuts
