"""FastAPI dependency injection."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache

from fastapi import HTTPException

from inkscribe.config import settings
from inkscribe.engine.config import RecognizeConfig
from inkscribe.engine.pipeline import GlyphPipeline
from inkscribe.recognizer.base import Recognizer, RecognizerUnavailable
from inkscribe.recognizer.loader import load_configured_recognizer
from inkscribe.session.manager import SessionManager


@lru_cache(maxsize=1)
def _cached_recognizer(model_path: str, vocab_path: str, input_size: int) -> Recognizer:
    return load_configured_recognizer(model_path, vocab_path, input_size)


def get_recognizer() -> Recognizer:
    try:
        return _cached_recognizer(
            settings.recognizer_model_path,
            settings.recognizer_vocab_path,
            settings.recognizer_input_size,
        )
    except RecognizerUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


def recognize_config() -> RecognizeConfig:
    return RecognizeConfig(
        top_k=settings.top_k,
        beam_width=settings.beam_width,
        per_step_top=settings.per_step_top,
    )


def build_pipeline(recognizer: Recognizer) -> GlyphPipeline:
    return GlyphPipeline(recognizer, recognize_config=recognize_config())


_executor: ThreadPoolExecutor | None = None
_session_manager = SessionManager(max_sessions=settings.max_sessions)


def get_session_manager() -> SessionManager:
    return _session_manager


def get_executor() -> ThreadPoolExecutor:
    """Shared recognition pool, created on first use."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=max(1, settings.worker_threads),
            thread_name_prefix="inkscribe-recognizer",
        )
    return _executor


def shutdown_executor() -> None:
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=False)
        _executor = None
