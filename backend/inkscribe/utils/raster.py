"""Raster helpers: array conversion, white compositing, luminance, PNG transport."""

from __future__ import annotations

import base64
import binascii
import io

import numpy as np
from numpy.typing import NDArray
from PIL import Image, UnidentifiedImageError

# ITU-R BT.601 luma weights
_LUMA_R = 0.299
_LUMA_G = 0.587
_LUMA_B = 0.114


def to_rgba_array(image: Image.Image | NDArray) -> NDArray[np.uint8]:
    """Return an H×W×4 uint8 array for a PIL image or a gray/RGB/RGBA array."""
    if isinstance(image, Image.Image):
        return np.array(image.convert("RGBA"), dtype=np.uint8)

    arr = np.asarray(image)
    if arr.ndim == 2:
        gray = arr.astype(np.uint8)
        alpha = np.full_like(gray, 255)
        return np.dstack([gray, gray, gray, alpha])
    if arr.ndim == 3 and arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2], 255, dtype=np.uint8)
        return np.dstack([arr.astype(np.uint8), alpha])
    if arr.ndim == 3 and arr.shape[2] == 4:
        return arr.astype(np.uint8)
    raise ValueError(f"Unsupported raster shape: {arr.shape}")


def luminance(rgba: NDArray[np.uint8]) -> NDArray[np.int32]:
    """Integer gray level per pixel. Fully transparent pixels read as white (255)."""
    rgb = rgba[..., :3].astype(np.float32)
    gray = (_LUMA_R * rgb[..., 0] + _LUMA_G * rgb[..., 1] + _LUMA_B * rgb[..., 2]).astype(np.int32)
    gray = np.clip(gray, 0, 255)
    gray[rgba[..., 3] == 0] = 255
    return gray


def ink_mask(image: Image.Image | NDArray, ink_threshold: int) -> NDArray[np.bool_]:
    """Boolean H×W mask, True where ``gray < ink_threshold``."""
    return luminance(to_rgba_array(image)) < ink_threshold


def composite_on_white(image: Image.Image | NDArray) -> NDArray[np.uint8]:
    """Alpha-blend onto an opaque white background, returning H×W×3."""
    rgba = to_rgba_array(image).astype(np.float32)
    alpha = rgba[..., 3:4] / 255.0
    out = rgba[..., :3] * alpha + 255.0 * (1.0 - alpha)
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


def white_canvas(width: int, height: int) -> NDArray[np.uint8]:
    return np.full((height, width, 3), 255, dtype=np.uint8)


def decode_image(data: str) -> NDArray[np.uint8]:
    """Decode a base64 image (optionally a ``data:`` URL) into an RGBA array.

    Raises ValueError for anything that is not a readable image.
    """
    if data.startswith("data:"):
        _, _, data = data.partition(",")
    try:
        raw = base64.b64decode(data, validate=True)
        with Image.open(io.BytesIO(raw)) as img:
            return np.array(img.convert("RGBA"), dtype=np.uint8)
    except (binascii.Error, UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Invalid image payload: {e}") from e


def encode_png(array: NDArray) -> str:
    """Encode a gray/RGB/RGBA array as base64 PNG."""
    arr = np.asarray(array, dtype=np.uint8)
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")
