"""Tests for API endpoints (recognizer replaced by a scripted fake)."""

from __future__ import annotations

import asyncio
import threading

import pytest
from fastapi.testclient import TestClient

import inkscribe.api.segment as segment_api
from inkscribe.api.sessions import _stream_session
from inkscribe.dependencies import get_executor, get_recognizer
from inkscribe.engine.pipeline import GlyphPipeline
from inkscribe.main import app
from inkscribe.session.manager import SessionManager
from tests.conftest import STROKE_LEFT, STROKE_RIGHT, TWO_BLOBS, FakeRecognizer, png_b64, white


client = TestClient(app)


@pytest.fixture
def fake_recognizer():
    rec = FakeRecognizer(texts=("a", "b", "c"))
    app.dependency_overrides[get_recognizer] = lambda: rec
    yield rec
    app.dependency_overrides.pop(get_recognizer, None)


@pytest.fixture
def failing_recognizer():
    rec = FakeRecognizer(fail=True)
    app.dependency_overrides[get_recognizer] = lambda: rec
    yield rec
    app.dependency_overrides.pop(get_recognizer, None)


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["recognizer_configured"] is False


# -- segment ----------------------------------------------------------------


def test_segment_two_blobs():
    response = client.post("/api/segment", json={"image": png_b64(TWO_BLOBS)})
    assert response.status_code == 200
    data = response.json()
    assert (data["width"], data["height"]) == (200, 80)
    assert [b["left"] for b in data["boxes"]] == [20, 140]
    assert data["boxes"][0]["width"] == 40


def test_segment_data_url_and_blank():
    image = "data:image/png;base64," + png_b64(white(50, 50))
    response = client.post("/api/segment", json={"image": image})
    assert response.status_code == 200
    assert response.json()["boxes"] == []


def test_segment_config_override():
    response = client.post(
        "/api/segment",
        json={
            "image": png_b64(TWO_BLOBS),
            "config": {"cluster_pad_px": 100, "wide_box_split_ratio": 50},
        },
    )
    assert response.status_code == 200
    assert len(response.json()["boxes"]) == 1


def test_segment_invalid_config():
    response = client.post(
        "/api/segment",
        json={"image": png_b64(TWO_BLOBS), "config": {"ink_threshold": 0}},
    )
    assert response.status_code == 422


def test_segment_bad_image():
    response = client.post("/api/segment", json={"image": "not-an-image"})
    assert response.status_code == 400


def test_segment_runs_on_recognition_pool(monkeypatch):
    threads = []
    real_segment = segment_api.segment

    def recording_segment(image, cfg):
        threads.append(threading.current_thread().name)
        return real_segment(image, cfg)

    monkeypatch.setattr(segment_api, "segment", recording_segment)
    response = client.post("/api/segment", json={"image": png_b64(TWO_BLOBS)})
    assert response.status_code == 200
    assert len(threads) == 1
    assert threads[0].startswith("inkscribe-recognizer")


# -- recognize --------------------------------------------------------------


def test_recognize_without_recognizer():
    response = client.post("/api/recognize", json={"image": png_b64(TWO_BLOBS)})
    assert response.status_code == 503
    assert "not configured" in response.json()["detail"]


def test_recognize_single(fake_recognizer):
    response = client.post("/api/recognize", json={"image": png_b64(TWO_BLOBS), "preview": True})
    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "single"
    assert data["text"] == "a"
    assert data["candidates"][0] == {"text": "a", "percent": 90.0}
    assert data["display"].startswith("Mode: single")
    assert data["preview_png"]


def test_recognize_split(fake_recognizer):
    response = client.post("/api/recognize", json={"image": png_b64(TWO_BLOBS), "mode": "split"})
    assert response.status_code == 200
    data = response.json()
    assert data["text"] == "ab"
    assert len(data["glyphs"]) == 2
    assert data["glyphs"][1]["box"]["left"] == 140
    assert data["preview_png"] is None


def test_recognize_bad_image(fake_recognizer):
    response = client.post("/api/recognize", json={"image": "%%%"})
    assert response.status_code == 400


def test_recognize_failure(failing_recognizer):
    response = client.post("/api/recognize", json={"image": png_b64(TWO_BLOBS)})
    assert response.status_code == 502
    assert response.json()["detail"].startswith("Error:")


# -- sessions ---------------------------------------------------------------
# A long debounce keeps automatic recognition out of the way; lane switches
# and commits recognize on demand.


def _create(c, **body):
    body.setdefault("debounce_ms", 60000)
    response = c.post("/api/sessions", json=body)
    assert response.status_code == 200
    return response.json()


def test_session_dual_lane_flow(fake_recognizer):
    with TestClient(app) as c:
        session = _create(c)
        sid = session["session_id"]
        assert session["dual"] is True
        assert [lane["lane"] for lane in session["lanes"]] == ["A", "B"]

        data = c.post(f"/api/sessions/{sid}/lanes/A/strokes", json={"points": STROKE_LEFT}).json()
        assert data["lanes"][0]["has_ink"] is True
        assert data["lanes"][0]["phase"] == "recognizing"

        data = c.post(f"/api/sessions/{sid}/lanes/B/strokes", json={"points": STROKE_LEFT}).json()
        assert data["committed_text"] == "a"
        assert data["active_lane"] == "B"
        assert data["lanes"][0]["has_ink"] is False

        data = c.post(f"/api/sessions/{sid}/lanes/B/commit").json()
        assert data["committed_text"] == "ab"
        assert data["composed"] == "ab"

        data = c.post(f"/api/sessions/{sid}/delete-last").json()
        assert data["committed_text"] == "a"
        data = c.post(f"/api/sessions/{sid}/restore-last").json()
        assert data["committed_text"] == "ab"
        data = c.post(f"/api/sessions/{sid}/restore-last").json()
        assert data["message"] == "Nothing to restore"

        data = c.post(f"/api/sessions/{sid}/clear").json()
        assert data["committed_text"] == ""
        assert data["message"] == "(cleared)"

        assert c.get(f"/api/sessions/{sid}").status_code == 200
        assert c.delete(f"/api/sessions/{sid}").status_code == 200
        assert c.get(f"/api/sessions/{sid}").status_code == 404


def test_session_recognize_and_undo(fake_recognizer):
    with TestClient(app) as c:
        sid = _create(c, dual=False, auto_infer=False)["session_id"]
        c.post(f"/api/sessions/{sid}/lanes/A/strokes", json={"points": STROKE_LEFT})

        response = c.post(f"/api/sessions/{sid}/lanes/A/recognize")
        assert response.status_code == 200
        data = response.json()
        assert data["lanes"][0]["pending_text"] == "a"
        assert data["composed"] == "[a]"
        assert data["message"].startswith("Mode: single")

        data = c.post(f"/api/sessions/{sid}/lanes/A/undo").json()
        assert data["lanes"][0]["has_ink"] is False
        assert data["lanes"][0]["pending_text"] == ""
        assert data["lanes"][0]["can_redo"] is True

        data = c.post(f"/api/sessions/{sid}/lanes/A/undo").json()
        assert data["message"] == "Nothing to undo"

        data = c.post(f"/api/sessions/{sid}/lanes/A/redo").json()
        assert data["lanes"][0]["has_ink"] is True


def test_session_split_mode(fake_recognizer):
    with TestClient(app) as c:
        sid = _create(c, dual=False, split=True)["session_id"]
        c.post(f"/api/sessions/{sid}/lanes/A/strokes", json={"points": STROKE_LEFT})
        c.post(f"/api/sessions/{sid}/lanes/A/strokes", json={"points": STROKE_RIGHT})
        data = c.post(f"/api/sessions/{sid}/lanes/A/commit").json()
        assert data["committed_text"] == "ab"


def test_session_commit_empty_lane(fake_recognizer):
    with TestClient(app) as c:
        sid = _create(c)["session_id"]
        data = c.post(f"/api/sessions/{sid}/lanes/A/commit").json()
        assert data["committed_text"] == ""
        assert data["message"] == "Nothing to commit"


def test_session_recognizer_failure(failing_recognizer):
    with TestClient(app) as c:
        sid = _create(c)["session_id"]
        c.post(f"/api/sessions/{sid}/lanes/A/strokes", json={"points": STROKE_LEFT})
        response = c.post(f"/api/sessions/{sid}/lanes/A/commit")
        assert response.status_code == 502
        data = c.get(f"/api/sessions/{sid}").json()
        assert data["committed_text"] == ""
        assert data["lanes"][0]["has_ink"] is True
        assert "model exploded" in data["lanes"][0]["error"]


def test_session_lane_errors(fake_recognizer):
    with TestClient(app) as c:
        sid = _create(c, dual=False)["session_id"]
        response = c.post(f"/api/sessions/{sid}/lanes/B/strokes", json={"points": STROKE_LEFT})
        assert response.status_code == 400
        response = c.post(f"/api/sessions/{sid}/lanes/C/strokes", json={"points": STROKE_LEFT})
        assert response.status_code == 422
        response = c.post(f"/api/sessions/{sid}/lanes/A/strokes", json={"points": []})
        assert response.status_code == 422


def test_unknown_session(fake_recognizer):
    with TestClient(app) as c:
        assert c.get("/api/sessions/nope").status_code == 404
        assert c.post("/api/sessions/nope/delete-last").status_code == 404
        assert c.delete("/api/sessions/nope").status_code == 404


def test_create_session_without_recognizer():
    with TestClient(app) as c:
        assert c.post("/api/sessions", json={}).status_code == 503


def test_shutdown_releases_recognition_pool():
    with TestClient(app) as c:
        pool = get_executor()
        assert c.get("/api/health").status_code == 200
    with pytest.raises(RuntimeError):
        pool.submit(int)
    assert get_executor() is not pool


def test_stream_ends_when_session_closes():
    async def collect():
        session = SessionManager().create(GlyphPipeline(FakeRecognizer()))
        session.controller.close()
        return [chunk async for chunk in _stream_session(session)]

    events = asyncio.run(collect())
    assert events[0].startswith("event: state\n")
    assert '"committed_text": ""' in events[0]
    assert events[-1].startswith("event: done\n")
