"""Per-lane and per-session state owned by the session controller."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from inkscribe.engine.types import Candidate, GlyphResult
from inkscribe.session.jobs import InferJob


class Lane(str, enum.Enum):
    A = "A"
    B = "B"

    @property
    def other(self) -> Lane:
        return Lane.B if self is Lane.A else Lane.A


class LanePhase(str, enum.Enum):
    IDLE = "idle"
    INK_PRESENT = "ink_present"
    RECOGNIZING = "recognizing"
    PENDING_READY = "pending_ready"


@dataclass
class LaneState:
    # Best candidate for the lane's uncommitted ink
    pending_text: str = ""
    last_change_counter_seen: int = -1
    active_job: InferJob | None = None
    candidates: list[Candidate] = field(default_factory=list)
    glyphs: list[GlyphResult] = field(default_factory=list)
    last_error: str = ""

    def reset(self) -> None:
        self.pending_text = ""
        self.last_change_counter_seen = -1
        self.candidates = []
        self.glyphs = []
        self.last_error = ""


@dataclass
class LaneSnapshot:
    lane: Lane
    phase: LanePhase
    pending_text: str
    has_ink: bool
    change_counter: int
    can_undo: bool
    can_redo: bool
    candidates: list[Candidate]
    glyphs: list[GlyphResult]
    error: str


@dataclass
class SessionSnapshot:
    committed_text: str
    composed: str
    active_lane: Lane
    lanes: list[LaneSnapshot]
