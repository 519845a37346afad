"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from inkscribe.config import settings
from inkscribe.dependencies import get_session_manager
from inkscribe.models.responses import HealthResponse
from inkscribe.session.manager import SessionManager

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(manager: SessionManager = Depends(get_session_manager)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        recognizer_configured=bool(settings.recognizer_model_path and settings.recognizer_vocab_path),
        sessions=len(manager),
    )
