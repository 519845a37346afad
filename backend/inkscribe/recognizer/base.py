"""Recognizer contract and its failure types."""

from __future__ import annotations

from typing import Protocol

import numpy as np
from numpy.typing import NDArray

from inkscribe.engine.types import Candidate


class RecognizerFailure(Exception):
    """The recognizer raised while scoring an image. Message is user-displayable."""


class RecognizerUnavailable(Exception):
    """No recognizer is configured, or the configured model failed to load."""


class Recognizer(Protocol):
    """Opaque scorer: normalized square raster -> candidates, best first.

    ``beam_width`` and ``per_step_top`` bound the decoder search and are
    passed through untouched.
    """

    def recognize_top_k(
        self,
        image: NDArray[np.uint8],
        top_k: int = 5,
        beam_width: int = 25,
        per_step_top: int = 25,
    ) -> list[Candidate]: ...
