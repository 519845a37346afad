"""Engine configuration: segmentation, normalization and decoding knobs."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SegConfig:
    """Controls how an ink raster is split into glyph boxes."""

    # gray < ink_threshold counts as ink
    ink_threshold: int = 245
    # Components smaller than this are noise (stray dots)
    min_component_area: int = 25
    # Expansion used to re-join parts of one glyph drawn as separate strokes
    cluster_pad_px: int = 10
    # Hard cap on returned boxes
    max_glyphs: int = 16

    # Projection split: boxes at least this wide relative to height may hold
    # several glyphs touching each other
    wide_box_split_ratio: float = 1.35
    projection_min_gap_px: int = 4
    projection_smoothing_window_px: int = 3
    # Columns at or below this fraction of the peak density form a valley.
    # Empirical; not tuned for every script.
    valley_fraction: float = 0.12


@dataclass
class NormalizeConfig:
    """Tight-crop + centered-square parameters for the recognizer input."""

    ink_threshold: int = 245
    inner_pad_px: int = 8
    outer_margin_px: int = 24
    min_side_px: int = 96


# Whole-canvas recognition
SINGLE_NORMALIZE = NormalizeConfig(inner_pad_px=8, outer_margin_px=24, min_side_px=96)
# One segmented glyph at a time
GLYPH_NORMALIZE = NormalizeConfig(inner_pad_px=6, outer_margin_px=18, min_side_px=72)


@dataclass
class RecognizeConfig:
    """Decoder search bounds, passed to the recognizer unchanged."""

    top_k: int = 5
    beam_width: int = 25
    per_step_top: int = 25


@dataclass
class CropConfig:
    # Pad added around each segmented box before normalization
    pad_px: int = 10


@dataclass
class PreviewConfig:
    cell_size_px: int = 128
    max_cols: int = 4
    pad_px: int = 10
