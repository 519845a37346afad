"""Recognition session controller: debounced, cancellable recognition per lane.

Owns the composed-text buffer and one LaneState per drawing lane. All
methods run on the asyncio event loop thread; only export-normalize-recognize
work is handed to an executor. At most one job per lane is outstanding: a new
job cancels the previous one, and a cancelled job never writes lane state.

Dual-lane composition: starting a stroke on one lane commits whatever the
other lane holds, so alternating lanes finalizes each glyph without an
explicit action. A controller with only lane A is the single-region mode.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Coroutine, Iterable, Mapping
from concurrent.futures import Executor
from functools import partial
from typing import Any

from numpy.typing import NDArray

from inkscribe.canvas import StrokeCanvas
from inkscribe.engine.pipeline import GlyphPipeline, RecognitionResult, empty_result
from inkscribe.recognizer.base import RecognizerFailure
from inkscribe.session.jobs import InferJob, JobStatus
from inkscribe.session.state import (
    Lane,
    LanePhase,
    LaneSnapshot,
    LaneState,
    SessionSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.18


class RecognitionSessionController:
    """State machine for one composition session over one or two lanes."""

    def __init__(
        self,
        canvases: Mapping[Lane, StrokeCanvas],
        pipeline: GlyphPipeline,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        split_mode: bool = False,
        auto_infer: bool = True,
        stroke_width_px: float | None = None,
        executor: Executor | None = None,
    ) -> None:
        if set(canvases) not in ({Lane.A}, {Lane.A, Lane.B}):
            raise ValueError("A session needs lane A, or lanes A and B")

        self._canvases: dict[Lane, StrokeCanvas] = {lane: canvases[lane] for lane in Lane if lane in canvases}
        self._lanes: dict[Lane, LaneState] = {lane: LaneState() for lane in self._canvases}
        self._pipeline = pipeline
        self._executor = executor

        self.debounce_s = max(0.0, debounce_s)
        self.split_mode = split_mode
        self.auto_infer = auto_infer
        self.stroke_width_px = stroke_width_px
        self.active_lane = Lane.A
        self.closed = False

        self._committed = ""
        self._restore_stack: list[str] = []
        self._seq = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Callable[[], None]] = []

        self._subscriptions: list[tuple[StrokeCanvas, str, Callable[..., None]]] = []
        for lane, canvas in self._canvases.items():
            self._subscribe(canvas, "stroke_committed", partial(self._handle_stroke_committed, lane))
            self._subscribe(canvas, "history_changed", partial(self._handle_history_changed, lane))

    # -- accessors ----------------------------------------------------------

    @property
    def dual(self) -> bool:
        return len(self._canvases) == 2

    @property
    def lanes(self) -> tuple[Lane, ...]:
        return tuple(self._canvases)

    @property
    def committed_text(self) -> str:
        return self._committed

    def canvas(self, lane: Lane) -> StrokeCanvas:
        try:
            return self._canvases[lane]
        except KeyError:
            raise ValueError(f"Lane {lane.value} is not part of this session") from None

    def lane_state(self, lane: Lane) -> LaneState:
        self.canvas(lane)
        return self._lanes[lane]

    def pending_text(self, lane: Lane) -> str:
        return self.lane_state(lane).pending_text

    def phase(self, lane: Lane) -> LanePhase:
        state = self.lane_state(lane)
        if state.active_job is not None and state.active_job.in_flight:
            return LanePhase.RECOGNIZING
        if state.pending_text.strip():
            return LanePhase.PENDING_READY
        if self._canvases[lane].has_ink():
            return LanePhase.INK_PRESENT
        return LanePhase.IDLE

    def composed_view(self) -> str:
        """Committed text followed by ``[pending]`` for each lane holding a result."""
        parts = [self._committed]
        for state in self._lanes.values():
            if state.pending_text.strip():
                parts.append(f"[{state.pending_text}]")
        return "".join(parts)

    def snapshot(self) -> SessionSnapshot:
        lanes = []
        for lane, canvas in self._canvases.items():
            state = self._lanes[lane]
            lanes.append(
                LaneSnapshot(
                    lane=lane,
                    phase=self.phase(lane),
                    pending_text=state.pending_text,
                    has_ink=canvas.has_ink(),
                    change_counter=canvas.change_counter,
                    can_undo=canvas.can_undo(),
                    can_redo=canvas.can_redo(),
                    candidates=list(state.candidates),
                    glyphs=list(state.glyphs),
                    error=state.last_error,
                )
            )
        return SessionSnapshot(
            committed_text=self._committed,
            composed=self.composed_view(),
            active_lane=self.active_lane,
            lanes=lanes,
        )

    # -- observers ----------------------------------------------------------

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` after every state change. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()

    # -- lane events --------------------------------------------------------

    async def on_stroke_started(self, lane: Lane) -> None:
        """Pointer down on ``lane``. In dual mode, first commit the other lane."""
        self.canvas(lane)
        if self.dual:
            other = lane.other
            if self._has_content(other):
                try:
                    await self.commit_lane(other, reason="lane_switch")
                except RecognizerFailure as e:
                    logger.warning("Lane %s: switch commit failed: %s", other.value, e)
        if self.active_lane is not lane:
            self.active_lane = lane
            self._notify()

    def on_stroke_committed(self, lane: Lane, reason: str = "stroke_committed") -> InferJob:
        """Supersede the lane's job with a new debounced recognition."""
        job = self._start_job(lane, reason)
        self._spawn(self._run_debounced(job))
        logger.debug("Lane %s: scheduled job #%d (%s)", lane.value, job.seq, reason)
        self._notify()
        return job

    async def submit_stroke(
        self,
        lane: Lane,
        points: Iterable[tuple[float, float]],
        width_px: float | None = None,
    ) -> None:
        """Stroke started, drawn and committed on ``lane`` in one call."""
        await self.on_stroke_started(lane)
        self.canvas(lane).add_stroke(points, width_px)

    def _handle_stroke_committed(self, lane: Lane) -> None:
        if self.auto_infer:
            self.on_stroke_committed(lane)

    def _handle_history_changed(self, lane: Lane, reason: str) -> None:
        if reason in ("undo", "redo"):
            if self._canvases[lane].has_ink():
                if self.auto_infer:
                    self.on_stroke_committed(lane, reason=reason)
            else:
                self._reset_lane(lane)
        elif reason == "clear":
            self._reset_lane(lane)

    # -- explicit actions ---------------------------------------------------

    async def recognize_now(self, lane: Lane) -> RecognitionResult | None:
        """Run recognition immediately, bypassing the debounce.

        Returns None if a newer job superseded this one. Raises
        RecognizerFailure with a displayable message on failure.
        """
        job = self._start_job(lane, "manual")
        self._notify()
        result = await self._execute(job)
        if job.status is JobStatus.FAILED:
            raise RecognizerFailure(job.error)
        return result

    async def commit_lane(self, lane: Lane, reason: str = "manual") -> str:
        """Append the lane's pending text to the committed buffer and clear the lane.

        If the lane still has ink whose recognition has not completed, the
        pending debounced job is cancelled and recognition runs once more
        before committing. Returns the committed text ("" for a no-op).
        """
        state = self.lane_state(lane)
        canvas = self._canvases[lane]

        stale = canvas.change_counter != state.last_change_counter_seen
        if canvas.has_ink() and (not state.pending_text.strip() or stale):
            logger.info("Lane %s: fallback recognition before commit (%s)", lane.value, reason)
            job = self._start_job(lane, f"fallback:{reason}")
            await self._execute(job)
            if job.status is JobStatus.FAILED:
                raise RecognizerFailure(job.error)
            if job.cancelled:
                return ""

        text = state.pending_text
        if not text.strip():
            return ""

        self._committed += text
        self._restore_stack.clear()
        self._cancel_job(state)
        state.reset()
        canvas.clear()
        logger.info("Lane %s: committed %r (%s)", lane.value, text, reason)
        self._notify()
        return text

    def delete_last(self) -> bool:
        """Undo the latest unit: lane B's pending glyph, then lane A's, then one code point."""
        for lane in (Lane.B, Lane.A):
            if lane in self._lanes and self._lanes[lane].pending_text.strip():
                self._discard_lane(lane)
                logger.info("Lane %s: discarded pending glyph", lane.value)
                self._notify()
                return True

        if self._committed:
            removed = self._committed[-1]
            self._committed = self._committed[:-1]
            self._restore_stack.append(removed)
            self._notify()
            return True
        return False

    def restore_last(self) -> bool:
        """Re-append the most recent code point removed by delete_last()."""
        if not self._restore_stack:
            return False
        self._committed += self._restore_stack.pop()
        self._notify()
        return True

    def clear_all(self) -> None:
        for lane, canvas in self._canvases.items():
            state = self._lanes[lane]
            self._cancel_job(state)
            state.reset()
            canvas.clear()
        self._committed = ""
        self._restore_stack.clear()
        self._notify()

    async def wait_idle(self) -> None:
        """Wait until every scheduled job has finished or been dropped."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        self.clear_all()
        for task in list(self._tasks):
            task.cancel()
        for canvas, event, callback in self._subscriptions:
            canvas.unsubscribe(event, callback)
        self._subscriptions.clear()
        self.closed = True
        self._notify()

    # -- jobs ---------------------------------------------------------------

    def _start_job(self, lane: Lane, reason: str) -> InferJob:
        state = self.lane_state(lane)
        self._cancel_job(state)
        job = InferJob(lane=lane.value, seq=next(self._seq), reason=reason)
        state.active_job = job
        return job

    def _cancel_job(self, state: LaneState) -> None:
        job = state.active_job
        if job is not None:
            job.cancel()
            logger.debug("Lane %s: job #%d cancelled", job.lane, job.seq)
        state.active_job = None

    async def _run_debounced(self, job: InferJob) -> None:
        await asyncio.sleep(self.debounce_s)
        if job.cancelled:
            return
        await self._execute(job, skip_unchanged=True)

    async def _execute(self, job: InferJob, skip_unchanged: bool = False) -> RecognitionResult | None:
        """Recognize the lane's current ink and write the result unless cancelled.

        Failures are recorded on the job and the lane; pending text keeps its
        last good value.
        """
        lane = Lane(job.lane)
        state = self._lanes[lane]
        canvas = self._canvases[lane]

        counter = canvas.change_counter
        if skip_unchanged and counter == state.last_change_counter_seen:
            job.status = JobStatus.DONE
            self._release(state, job)
            self._notify()
            return None

        job.status = JobStatus.RUNNING
        white = canvas.export_for_infer(self.stroke_width_px) if canvas.has_ink() else None

        try:
            result = await self._recognize(white)
        except RecognizerFailure as e:
            if job.cancelled:
                return None
            job.fail(str(e))
            state.last_error = str(e)
            logger.warning("Lane %s: job #%d failed: %s", lane.value, job.seq, e)
            self._release(state, job)
            self._notify()
            return None

        if job.cancelled:
            logger.debug("Lane %s: job #%d superseded, result dropped", lane.value, job.seq)
            return None

        state.pending_text = result.text
        state.candidates = list(result.candidates)
        state.glyphs = list(result.glyphs)
        state.last_error = ""
        state.last_change_counter_seen = counter
        job.status = JobStatus.DONE
        self._release(state, job)
        logger.debug("Lane %s: job #%d -> %r", lane.value, job.seq, result.text)
        self._notify()
        return result

    async def _recognize(self, white: NDArray | None) -> RecognitionResult:
        if white is None:
            return empty_result(self.split_mode)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self._executor, partial(self._pipeline.run, white, self.split_mode)
            )
        except RecognizerFailure:
            raise
        except Exception as e:
            logger.exception("Recognition pipeline error")
            raise RecognizerFailure(f"Recognition error: {e}") from e

    @staticmethod
    def _release(state: LaneState, job: InferJob) -> None:
        if state.active_job is job:
            state.active_job = None

    # -- helpers ------------------------------------------------------------

    def _has_content(self, lane: Lane) -> bool:
        return bool(self._lanes[lane].pending_text.strip()) or self._canvases[lane].has_ink()

    def _discard_lane(self, lane: Lane) -> None:
        state = self._lanes[lane]
        self._cancel_job(state)
        state.reset()
        self._canvases[lane].clear()

    def _reset_lane(self, lane: Lane) -> None:
        state = self._lanes[lane]
        self._cancel_job(state)
        state.reset()
        self._notify()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _subscribe(self, canvas: StrokeCanvas, event: str, callback: Callable[..., None]) -> None:
        canvas.subscribe(event, callback)
        self._subscriptions.append((canvas, event, callback))
