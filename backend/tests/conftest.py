"""Shared test helpers: raster builders and a scripted recognizer."""

from __future__ import annotations

import base64
import io
import threading

import numpy as np
from PIL import Image

from inkscribe.engine.types import Candidate


# Raster builders (white background, black ink)

def white(width: int, height: int) -> np.ndarray:
    return np.full((height, width, 3), 255, dtype=np.uint8)


def with_rect(img: np.ndarray, left: int, top: int, right: int, bottom: int) -> np.ndarray:
    img[top:bottom, left:right] = 0
    return img


def with_ring(img: np.ndarray, left: int, top: int, right: int, bottom: int, thickness: int = 4) -> np.ndarray:
    img[top:bottom, left:right] = 0
    img[top + thickness : bottom - thickness, left + thickness : right - thickness] = 255
    return img


def png_b64(img: np.ndarray) -> str:
    buf = io.BytesIO()
    Image.fromarray(img).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


# Two separated blobs: x 20..60 and 140..180 on a 200×80 raster
TWO_BLOBS = with_rect(with_rect(white(200, 80), 20, 20, 60, 60), 140, 20, 180, 60)

# Two 65×50 blocks joined by a thin bar; overall x 20..170, y 25..75
TOUCHING_PAIR = with_rect(
    with_rect(with_rect(white(200, 100), 20, 25, 85, 75), 105, 25, 170, 75),
    85, 49, 105, 51,
)

# Vertical strokes for the stroke canvas (512×512)
STROKE_LEFT = [(120.0, 150.0), (120.0, 250.0), (122.0, 350.0)]
STROKE_RIGHT = [(360.0, 150.0), (360.0, 250.0), (358.0, 350.0)]


class FakeRecognizer:
    """Returns scripted texts in call order; the last one repeats.

    ``gate_first`` blocks the first call until ``gate`` is set, and
    ``started`` is set as soon as that call begins.
    """

    def __init__(self, texts=("a",), fail: bool = False, gate_first: bool = False) -> None:
        self.texts = list(texts)
        self.fail = fail
        self.gate_first = gate_first
        self.started = threading.Event()
        self.gate = threading.Event()
        self.calls = 0
        self.images: list[np.ndarray] = []
        self._lock = threading.Lock()

    def recognize_top_k(self, image, top_k=5, beam_width=25, per_step_top=25):
        with self._lock:
            index = self.calls
            self.calls += 1
            self.images.append(image)
        if index == 0 and self.gate_first:
            self.started.set()
            self.gate.wait(timeout=5)
        if self.fail:
            raise RuntimeError("model exploded")
        text = self.texts[min(index, len(self.texts) - 1)]
        return [Candidate(text=text, percent=90.0), Candidate(text=text + "?", percent=5.0)][:top_k]
