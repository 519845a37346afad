"""Composition session endpoints: strokes per lane, commit, delete/restore, SSE updates."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from inkscribe.config import settings
from inkscribe.dependencies import build_pipeline, get_executor, get_recognizer, get_session_manager
from inkscribe.models.requests import CreateSessionRequest, StrokeRequest
from inkscribe.models.responses import SessionResponse
from inkscribe.recognizer.base import Recognizer, RecognizerFailure
from inkscribe.session.manager import Session, SessionManager, SessionNotFound
from inkscribe.session.state import Lane

router = APIRouter(prefix="/sessions")


def _get_session(manager: SessionManager, session_id: str) -> Session:
    try:
        return manager.get(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}") from None


def _check_lane(session: Session, lane: Lane) -> None:
    if lane not in session.controller.lanes:
        raise HTTPException(status_code=400, detail=f"Lane {lane.value} is not part of this session")


@router.post("", response_model=SessionResponse)
async def create_session(
    req: CreateSessionRequest,
    recognizer: Recognizer = Depends(get_recognizer),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    debounce_ms = req.debounce_ms if req.debounce_ms is not None else settings.debounce_ms
    session = manager.create(
        build_pipeline(recognizer),
        dual=req.dual,
        split=req.split,
        auto_infer=req.auto_infer,
        width=req.width or settings.canvas_width,
        height=req.height or settings.canvas_height,
        stroke_width_px=req.stroke_width_px or settings.stroke_width_px,
        debounce_s=debounce_ms / 1000.0,
        executor=get_executor(),
    )
    return SessionResponse.from_session(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    return SessionResponse.from_session(_get_session(manager, session_id))


@router.delete("/{session_id}")
async def close_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> dict[str, str]:
    try:
        manager.close(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}") from None
    return {"status": "closed", "session_id": session_id}


# -- lanes ----------------------------------------------------------------


@router.post("/{session_id}/lanes/{lane}/strokes", response_model=SessionResponse)
async def add_stroke(
    session_id: str,
    lane: Lane,
    req: StrokeRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = _get_session(manager, session_id)
    _check_lane(session, lane)
    await session.controller.submit_stroke(lane, req.points, req.width_px)
    return SessionResponse.from_session(session)


@router.post("/{session_id}/lanes/{lane}/undo", response_model=SessionResponse)
async def undo_stroke(
    session_id: str,
    lane: Lane,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = _get_session(manager, session_id)
    _check_lane(session, lane)
    changed = session.controller.canvas(lane).undo()
    return SessionResponse.from_session(session, message="" if changed else "Nothing to undo")


@router.post("/{session_id}/lanes/{lane}/redo", response_model=SessionResponse)
async def redo_stroke(
    session_id: str,
    lane: Lane,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = _get_session(manager, session_id)
    _check_lane(session, lane)
    changed = session.controller.canvas(lane).redo()
    return SessionResponse.from_session(session, message="" if changed else "Nothing to redo")


@router.post("/{session_id}/lanes/{lane}/commit", response_model=SessionResponse)
async def commit_lane(
    session_id: str,
    lane: Lane,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = _get_session(manager, session_id)
    _check_lane(session, lane)
    try:
        text = await session.controller.commit_lane(lane, reason="manual")
    except RecognizerFailure as e:
        raise HTTPException(status_code=502, detail=f"Error: {e}") from e
    return SessionResponse.from_session(session, message="" if text else "Nothing to commit")


@router.post("/{session_id}/lanes/{lane}/recognize", response_model=SessionResponse)
async def recognize_lane(
    session_id: str,
    lane: Lane,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = _get_session(manager, session_id)
    _check_lane(session, lane)
    try:
        result = await session.controller.recognize_now(lane)
    except RecognizerFailure as e:
        raise HTTPException(status_code=502, detail=f"Error: {e}") from e
    return SessionResponse.from_session(session, message=result.display if result else "")


# -- composed text ----------------------------------------------------------


@router.post("/{session_id}/delete-last", response_model=SessionResponse)
async def delete_last(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = _get_session(manager, session_id)
    changed = session.controller.delete_last()
    return SessionResponse.from_session(session, message="" if changed else "Nothing to delete")


@router.post("/{session_id}/restore-last", response_model=SessionResponse)
async def restore_last(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = _get_session(manager, session_id)
    changed = session.controller.restore_last()
    return SessionResponse.from_session(session, message="" if changed else "Nothing to restore")


@router.post("/{session_id}/clear", response_model=SessionResponse)
async def clear_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = _get_session(manager, session_id)
    session.controller.clear_all()
    return SessionResponse.from_session(session, message="(cleared)")


# -- live updates -----------------------------------------------------------


async def _stream_session(session: Session) -> AsyncGenerator[str, None]:
    """Yield an SSE ``state`` event with a fresh snapshot after every change."""
    queue: asyncio.Queue = asyncio.Queue()
    remove = session.controller.add_listener(lambda: queue.put_nowait(None))
    try:
        data = SessionResponse.from_session(session).model_dump()
        yield f"event: state\ndata: {json.dumps(data)}\n\n"
        while not session.closed:
            await queue.get()
            # Collapse bursts into one snapshot
            while not queue.empty():
                queue.get_nowait()
            data = SessionResponse.from_session(session).model_dump()
            yield f"event: state\ndata: {json.dumps(data)}\n\n"
        yield f"event: done\ndata: {json.dumps({'type': 'done'})}\n\n"
    finally:
        remove()


@router.get("/{session_id}/stream")
async def stream_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> StreamingResponse:
    session = _get_session(manager, session_id)
    return StreamingResponse(
        _stream_session(session),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
