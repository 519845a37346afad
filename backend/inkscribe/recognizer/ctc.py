"""CTC sequence recognizer over an arbitrary per-timestep scoring model.

The model is any callable taking a (1, 1, S, S) float32 batch in [0, 1]
(black ink on white) and returning per-timestep class scores shaped (T, C),
(1, T, C) or (T, 1, C). Class 0 is the CTC blank.

Decoding is a prefix beam search in log space:
- each step only the ``per_step_top`` most likely classes are expanded
- at most ``beam_width`` prefixes survive each step
- a candidate's percent is its total path probability × 100
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Callable, Sequence

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from inkscribe.engine.types import Candidate
from inkscribe.recognizer.base import RecognizerFailure

logger = logging.getLogger(__name__)

NEG_INF = float("-inf")

ScoreModel = Callable[[NDArray[np.float32]], NDArray]


def _log_add(a: float, b: float) -> float:
    if a == NEG_INF:
        return b
    if b == NEG_INF:
        return a
    hi, lo = (a, b) if a > b else (b, a)
    return hi + math.log1p(math.exp(lo - hi))


def log_softmax(scores: NDArray) -> NDArray[np.float64]:
    """Row-wise log-softmax. Idempotent, so already-normalized log probs pass through."""
    x = np.asarray(scores, dtype=np.float64)
    x = x - x.max(axis=-1, keepdims=True)
    return x - np.log(np.exp(x).sum(axis=-1, keepdims=True))


def ctc_prefix_beam_search(
    log_probs: NDArray[np.float64],
    beam_width: int = 25,
    per_step_top: int = 25,
    blank: int = 0,
) -> list[tuple[tuple[int, ...], float]]:
    """Decode (T, C) log probabilities. Returns (label prefix, log prob), best first."""
    if log_probs.ndim != 2 or log_probs.shape[0] == 0:
        return []

    n_classes = log_probs.shape[1]
    k = max(1, min(per_step_top, n_classes))
    width = max(1, beam_width)

    # prefix -> (log P ending in blank, log P ending in non-blank)
    beams: dict[tuple[int, ...], tuple[float, float]] = {(): (0.0, NEG_INF)}

    for row in log_probs:
        top = np.argpartition(-row, k - 1)[:k].tolist()
        nxt: dict[tuple[int, ...], tuple[float, float]] = defaultdict(lambda: (NEG_INF, NEG_INF))

        for prefix, (p_b, p_nb) in beams.items():
            p_total = _log_add(p_b, p_nb)
            last = prefix[-1] if prefix else None

            for c in top:
                p = float(row[c])
                if c == blank:
                    b, nb = nxt[prefix]
                    nxt[prefix] = (_log_add(b, p_total + p), nb)
                    continue

                extended = prefix + (c,)
                if c == last:
                    sb, snb = nxt[prefix]
                    nxt[prefix] = (sb, _log_add(snb, p_nb + p))
                    # A repeat only extends the prefix across a blank
                    if p_b == NEG_INF:
                        continue
                    b, nb = nxt[extended]
                    nxt[extended] = (b, _log_add(nb, p_b + p))
                else:
                    b, nb = nxt[extended]
                    nxt[extended] = (b, _log_add(nb, p_total + p))

        ranked = sorted(nxt.items(), key=lambda kv: _log_add(*kv[1]), reverse=True)
        beams = dict(ranked[:width])

    return [(prefix, _log_add(p_b, p_nb)) for prefix, (p_b, p_nb) in beams.items()]


class CtcRecognizer:
    """Recognizer backed by a CTC scoring model and a label vocabulary."""

    def __init__(
        self,
        model: ScoreModel,
        vocab: Sequence[str],
        input_size: int = 96,
        blank_index: int = 0,
    ) -> None:
        if not vocab:
            raise ValueError("CTC vocabulary is empty")
        self._model = model
        self.vocab = list(vocab)
        self.input_size = input_size
        self.blank_index = blank_index

    def preprocess(self, image: NDArray[np.uint8]) -> NDArray[np.float32]:
        """Grayscale, resize to ``input_size``², scale to [0, 1], add batch/channel dims."""
        gray = Image.fromarray(np.asarray(image, dtype=np.uint8)).convert("L")
        gray = gray.resize((self.input_size, self.input_size), Image.Resampling.BILINEAR)
        arr = np.asarray(gray, dtype=np.float32) / 255.0
        return arr[np.newaxis, np.newaxis, :, :]

    def recognize_top_k(
        self,
        image: NDArray[np.uint8],
        top_k: int = 5,
        beam_width: int = 25,
        per_step_top: int = 25,
    ) -> list[Candidate]:
        try:
            scores = np.asarray(self._model(self.preprocess(image)))
        except Exception as e:
            raise RecognizerFailure(f"Recognizer error: {e}") from e

        log_probs = log_softmax(_time_major(scores))
        if log_probs.shape[-1] != len(self.vocab):
            raise RecognizerFailure(
                f"Model emits {log_probs.shape[-1]} classes but vocabulary has {len(self.vocab)}"
            )

        beams = ctc_prefix_beam_search(
            log_probs,
            beam_width=beam_width,
            per_step_top=per_step_top,
            blank=self.blank_index,
        )

        candidates: list[Candidate] = []
        for prefix, score in beams:
            if not prefix or score == NEG_INF:
                continue
            text = "".join(self.vocab[i] for i in prefix)
            candidates.append(Candidate(text=text, percent=min(100.0, math.exp(score) * 100.0)))
            if len(candidates) >= top_k:
                break

        logger.debug("CTC decode: T=%d, %d candidates", log_probs.shape[0], len(candidates))
        return candidates


def _time_major(scores: NDArray) -> NDArray:
    """Squeeze a singleton batch axis so scores are (T, C)."""
    if scores.ndim == 2:
        return scores
    if scores.ndim == 3:
        if scores.shape[0] == 1:
            return scores[0]
        if scores.shape[1] == 1:
            return scores[:, 0, :]
    raise RecognizerFailure(f"Unexpected model output shape: {scores.shape}")
