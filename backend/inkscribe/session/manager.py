"""In-memory registry of live composition sessions."""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from concurrent.futures import Executor
from dataclasses import dataclass

from inkscribe.canvas import StrokeCanvas
from inkscribe.engine.pipeline import GlyphPipeline
from inkscribe.session.controller import DEFAULT_DEBOUNCE_S, RecognitionSessionController
from inkscribe.session.state import Lane

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    pass


@dataclass
class Session:
    id: str
    controller: RecognitionSessionController

    @property
    def closed(self) -> bool:
        return self.controller.closed


class SessionManager:
    """Creates, looks up and evicts sessions. Oldest session goes first when full."""

    def __init__(self, max_sessions: int = 64) -> None:
        self.max_sessions = max(1, max_sessions)
        self._sessions: OrderedDict[str, Session] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(
        self,
        pipeline: GlyphPipeline,
        dual: bool = True,
        split: bool = False,
        auto_infer: bool = True,
        width: int = 512,
        height: int = 512,
        stroke_width_px: float = 14.0,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        executor: Executor | None = None,
    ) -> Session:
        lanes = (Lane.A, Lane.B) if dual else (Lane.A,)
        canvases = {lane: StrokeCanvas(width, height, stroke_width_px) for lane in lanes}
        controller = RecognitionSessionController(
            canvases,
            pipeline,
            debounce_s=debounce_s,
            split_mode=split,
            auto_infer=auto_infer,
            executor=executor,
        )
        session = Session(id=uuid.uuid4().hex, controller=controller)

        while len(self._sessions) >= self.max_sessions:
            old_id, old = self._sessions.popitem(last=False)
            old.controller.close()
            logger.info("Evicted session %s", old_id)

        self._sessions[session.id] = session
        logger.info("Created session %s (dual=%s, split=%s)", session.id, dual, split)
        return session

    def get(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound(session_id)
        session.controller.close()
        logger.info("Closed session %s", session_id)

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)
