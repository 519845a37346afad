"""Composition sessions: lanes, recognition jobs and the session controller."""

from inkscribe.session.controller import RecognitionSessionController
from inkscribe.session.jobs import InferJob, JobStatus
from inkscribe.session.state import Lane, LanePhase, LaneState, SessionSnapshot

__all__ = [
    "RecognitionSessionController",
    "InferJob",
    "JobStatus",
    "Lane",
    "LanePhase",
    "LaneState",
    "SessionSnapshot",
]
