"""Model + vocabulary loading for the configured recognizer."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from inkscribe.recognizer.base import RecognizerUnavailable
from inkscribe.recognizer.ctc import CtcRecognizer

logger = logging.getLogger(__name__)


def load_vocab(path: str | Path) -> list[str]:
    """Read a CTC vocabulary; index 0 must be the blank token.

    Accepted JSON shapes:
    - ``["<blank>", "a", "b", ...]``
    - ``{"itos": [...]}`` or ``{"vocab": [...]}``
    - ``{"<blank>": 0, "a": 1, ...}`` (token -> index)
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, list):
        return [str(t) for t in data]
    if isinstance(data, dict):
        for key in ("itos", "vocab"):
            if isinstance(data.get(key), list):
                return [str(t) for t in data[key]]
        if data and all(isinstance(v, int) for v in data.values()):
            by_index = sorted(data.items(), key=lambda kv: kv[1])
            return [str(token) for token, _ in by_index]
    raise ValueError(f"Unrecognized vocabulary format in {path}")


def load_torchscript_recognizer(
    model_path: str | Path,
    vocab_path: str | Path,
    input_size: int = 96,
    device: str = "cpu",
) -> CtcRecognizer:
    """Load a TorchScript CTC model. Needs the ``model`` extra (torch)."""
    import torch

    vocab = load_vocab(vocab_path)
    module = torch.jit.load(str(model_path), map_location=device)
    module.eval()

    def _forward(batch: NDArray[np.float32]) -> NDArray:
        with torch.no_grad():
            out = module(torch.from_numpy(batch).to(device))
        return out.detach().cpu().numpy()

    logger.info("Loaded recognizer %s (%d labels)", model_path, len(vocab))
    return CtcRecognizer(_forward, vocab, input_size=input_size)


def load_configured_recognizer(
    model_path: str,
    vocab_path: str,
    input_size: int = 96,
) -> CtcRecognizer:
    """Load the recognizer named by settings, or raise RecognizerUnavailable."""
    if not model_path or not vocab_path:
        raise RecognizerUnavailable(
            "[Recognizer not configured: set RECOGNIZER_MODEL_PATH and RECOGNIZER_VOCAB_PATH in .env]"
        )
    for p in (model_path, vocab_path):
        if not Path(p).is_file():
            raise RecognizerUnavailable(f"Recognizer file not found: {p}")
    try:
        return load_torchscript_recognizer(model_path, vocab_path, input_size=input_size)
    except Exception as e:
        logger.error("Recognizer load failed: %s", e)
        raise RecognizerUnavailable(f"Invalid model: {e}") from e
