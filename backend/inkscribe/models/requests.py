"""API request models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class SegConfigModel(BaseModel):
    ink_threshold: int = Field(default=245, ge=1, le=256)
    min_component_area: int = Field(default=25, ge=0)
    cluster_pad_px: int = Field(default=10, ge=0)
    max_glyphs: int = Field(default=16, ge=1)
    wide_box_split_ratio: float = Field(default=1.35, gt=0)
    projection_min_gap_px: int = Field(default=4, ge=1)
    projection_smoothing_window_px: int = Field(default=3, ge=1)
    valley_fraction: float = Field(default=0.12, ge=0, le=1)


class SegmentRequest(BaseModel):
    image: str = Field(..., description="Base64 PNG (or data URL), white or transparent background")
    config: SegConfigModel | None = Field(default=None, description="Segmentation overrides")


class RecognizeRequest(BaseModel):
    image: str = Field(..., description="Base64 PNG (or data URL), white or transparent background")
    mode: Literal["single", "split"] = Field(default="single", description="Whole image or per-glyph")
    preview: bool = Field(default=False, description="Return the normalized input(s) as PNG")
    config: SegConfigModel | None = Field(default=None, description="Segmentation overrides (split mode)")


class CreateSessionRequest(BaseModel):
    dual: bool = Field(default=True, description="Two alternating lanes (A/B) instead of one")
    split: bool = Field(default=False, description="Segment each lane into glyphs before recognizing")
    auto_infer: bool = Field(default=True, description="Recognize automatically after each stroke")
    width: int | None = Field(default=None, ge=8, le=4096)
    height: int | None = Field(default=None, ge=8, le=4096)
    stroke_width_px: float | None = Field(default=None, gt=0, le=256)
    debounce_ms: int | None = Field(default=None, ge=0, le=60000)


class StrokeRequest(BaseModel):
    points: list[tuple[float, float]] = Field(..., min_length=1, description="Stroke polyline (x, y)")
    width_px: float | None = Field(default=None, gt=0, le=256)
