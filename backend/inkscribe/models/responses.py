"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from inkscribe.engine.pipeline import RecognitionResult
from inkscribe.engine.types import BoundingBox, Candidate, GlyphResult
from inkscribe.session.manager import Session
from inkscribe.utils.raster import encode_png


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    recognizer_configured: bool = False
    sessions: int = 0


class BoxModel(BaseModel):
    left: int
    top: int
    right: int
    bottom: int
    width: int
    height: int

    @classmethod
    def from_box(cls, box: BoundingBox) -> BoxModel:
        return cls(
            left=box.left,
            top=box.top,
            right=box.right,
            bottom=box.bottom,
            width=box.width,
            height=box.height,
        )


class CandidateModel(BaseModel):
    text: str
    percent: float

    @classmethod
    def from_candidate(cls, c: Candidate) -> CandidateModel:
        return cls(text=c.text, percent=round(c.percent, 2))


class GlyphModel(BaseModel):
    box: BoxModel
    candidates: list[CandidateModel] = Field(default_factory=list)

    @classmethod
    def from_glyph(cls, g: GlyphResult) -> GlyphModel:
        return cls(
            box=BoxModel.from_box(g.box),
            candidates=[CandidateModel.from_candidate(c) for c in g.candidates],
        )


class SegmentResponse(BaseModel):
    width: int
    height: int
    boxes: list[BoxModel] = Field(default_factory=list)
    processing_time_ms: float = 0.0


class RecognizeResponse(BaseModel):
    mode: str
    text: str = ""
    candidates: list[CandidateModel] = Field(default_factory=list)
    glyphs: list[GlyphModel] = Field(default_factory=list)
    display: str = ""
    preview_png: str | None = None
    processing_time_ms: float = 0.0

    @classmethod
    def from_result(cls, result: RecognitionResult) -> RecognizeResponse:
        return cls(
            mode=result.mode,
            text=result.text,
            candidates=[CandidateModel.from_candidate(c) for c in result.candidates],
            glyphs=[GlyphModel.from_glyph(g) for g in result.glyphs],
            display=result.display,
            preview_png=encode_png(result.preview) if result.preview is not None else None,
            processing_time_ms=result.elapsed_ms,
        )


class LaneModel(BaseModel):
    lane: str
    phase: str
    pending_text: str = ""
    has_ink: bool = False
    change_counter: int = 0
    can_undo: bool = False
    can_redo: bool = False
    candidates: list[CandidateModel] = Field(default_factory=list)
    glyphs: list[GlyphModel] = Field(default_factory=list)
    error: str = ""


class SessionResponse(BaseModel):
    session_id: str
    dual: bool
    split: bool
    committed_text: str = ""
    composed: str = ""
    active_lane: str = "A"
    lanes: list[LaneModel] = Field(default_factory=list)
    message: str = ""

    @classmethod
    def from_session(cls, session: Session, message: str = "") -> SessionResponse:
        ctrl = session.controller
        snap = ctrl.snapshot()
        return cls(
            session_id=session.id,
            dual=ctrl.dual,
            split=ctrl.split_mode,
            committed_text=snap.committed_text,
            composed=snap.composed,
            active_lane=snap.active_lane.value,
            lanes=[
                LaneModel(
                    lane=ls.lane.value,
                    phase=ls.phase.value,
                    pending_text=ls.pending_text,
                    has_ink=ls.has_ink,
                    change_counter=ls.change_counter,
                    can_undo=ls.can_undo,
                    can_redo=ls.can_redo,
                    candidates=[CandidateModel.from_candidate(c) for c in ls.candidates],
                    glyphs=[GlyphModel.from_glyph(g) for g in ls.glyphs],
                    error=ls.error,
                )
                for ls in snap.lanes
            ],
            message=message,
        )
