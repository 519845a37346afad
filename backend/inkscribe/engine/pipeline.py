"""Recognition pipeline: white-background raster -> text + candidates.

Two modes:
- single: normalize the whole raster, one recognizer call
- split: segment into glyph boxes, then crop/normalize/recognize each box and
  concatenate the top-1 texts left-to-right
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from inkscribe.engine.config import (
    GLYPH_NORMALIZE,
    SINGLE_NORMALIZE,
    CropConfig,
    NormalizeConfig,
    PreviewConfig,
    RecognizeConfig,
    SegConfig,
)
from inkscribe.engine.normalizer import compose_grid, crop_with_pad, normalize
from inkscribe.engine.segmenter import segment
from inkscribe.engine.types import Candidate, GlyphResult
from inkscribe.recognizer.base import Recognizer, RecognizerFailure

logger = logging.getLogger(__name__)

MODE_SINGLE = "single"
MODE_SPLIT = "split"


@dataclass
class RecognitionResult:
    """Outcome of one pipeline run."""

    mode: str
    text: str = ""
    candidates: list[Candidate] = field(default_factory=list)
    glyphs: list[GlyphResult] = field(default_factory=list)
    preview: NDArray[np.uint8] | None = None
    elapsed_ms: float = 0.0

    @property
    def display(self) -> str:
        if self.mode == MODE_SPLIT:
            return format_split(self.glyphs, self.text)
        return format_candidates_single(self.candidates)


class GlyphPipeline:
    """Runs normalizer + recognizer, optionally preceded by segmentation."""

    def __init__(
        self,
        recognizer: Recognizer,
        seg_config: SegConfig | None = None,
        recognize_config: RecognizeConfig | None = None,
        single_normalize: NormalizeConfig | None = None,
        glyph_normalize: NormalizeConfig | None = None,
        crop_config: CropConfig | None = None,
        preview_config: PreviewConfig | None = None,
    ) -> None:
        self.recognizer = recognizer
        self.seg_config = seg_config or SegConfig()
        self.recognize_config = recognize_config or RecognizeConfig()
        self.single_normalize = single_normalize or SINGLE_NORMALIZE
        self.glyph_normalize = glyph_normalize or GLYPH_NORMALIZE
        self.crop_config = crop_config or CropConfig()
        self.preview_config = preview_config or PreviewConfig()

    def run(self, white: NDArray, split: bool = False, want_preview: bool = False) -> RecognitionResult:
        if split:
            return self.recognize_split(white, want_preview)
        return self.recognize_single(white, want_preview)

    def recognize_single(self, white: NDArray, want_preview: bool = False) -> RecognitionResult:
        start = time.perf_counter()
        normalized = normalize(white, self.single_normalize)
        candidates = self._recognize(normalized)

        return RecognitionResult(
            mode=MODE_SINGLE,
            text=candidates[0].text if candidates else "",
            candidates=candidates,
            preview=normalized if want_preview else None,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 1),
        )

    def recognize_split(self, white: NDArray, want_preview: bool = False) -> RecognitionResult:
        start = time.perf_counter()
        boxes = segment(white, self.seg_config)

        glyphs: list[GlyphResult] = []
        tiles: list[NDArray] = []
        for box in boxes:
            cropped = crop_with_pad(white, box, self.crop_config.pad_px)
            # The crop is thresholded with the segmenter's cutoff
            cfg = NormalizeConfig(
                ink_threshold=self.seg_config.ink_threshold,
                inner_pad_px=self.glyph_normalize.inner_pad_px,
                outer_margin_px=self.glyph_normalize.outer_margin_px,
                min_side_px=self.glyph_normalize.min_side_px,
            )
            normalized = normalize(cropped, cfg)
            glyphs.append(GlyphResult(box=box, candidates=self._recognize(normalized)))
            if want_preview:
                tiles.append(normalized)

        text = "".join(g.best for g in glyphs)
        logger.debug("split recognition: %d glyphs -> %r", len(glyphs), text)

        return RecognitionResult(
            mode=MODE_SPLIT,
            text=text,
            glyphs=glyphs,
            preview=compose_grid(tiles, self.preview_config) if want_preview else None,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 1),
        )

    def _recognize(self, normalized: NDArray) -> list[Candidate]:
        rc = self.recognize_config
        try:
            return list(
                self.recognizer.recognize_top_k(
                    normalized,
                    top_k=rc.top_k,
                    beam_width=rc.beam_width,
                    per_step_top=rc.per_step_top,
                )
            )
        except RecognizerFailure:
            raise
        except Exception as e:
            raise RecognizerFailure(f"Recognizer error: {e}") from e


def empty_result(split: bool = False) -> RecognitionResult:
    return RecognitionResult(mode=MODE_SPLIT if split else MODE_SINGLE)


# ---------------------------------------------------------------------------
# Display formatting
# ---------------------------------------------------------------------------


def format_candidates_single(candidates: list[Candidate]) -> str:
    if not candidates:
        return "No result"
    lines = ["Mode: single", "Top candidates:"]
    for i, c in enumerate(candidates):
        lines.append(f"{i + 1}) {c.text}  {c.percent:.1f}%")
    return "\n".join(lines)


def format_candidates_list(candidates: list[Candidate]) -> str:
    if not candidates:
        return "  (no result)\n"
    return "".join(f"  {i + 1}) {c.text}  {c.percent:.1f}%\n" for i, c in enumerate(candidates))


def format_split(glyphs: list[GlyphResult], text: str) -> str:
    if not glyphs:
        return "No ink detected."
    parts = [
        "Mode: split\n",
        f"Detected chars: {len(glyphs)}\n",
        f"Predicted: {text or '(empty)'}\n\n",
        "Per-char TopK:\n",
    ]
    for i, g in enumerate(glyphs):
        parts.append(f"[{i + 1}]\n")
        parts.append(format_candidates_list(g.candidates))
        parts.append("\n")
    return "".join(parts).rstrip()
