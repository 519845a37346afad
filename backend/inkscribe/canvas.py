"""StrokeCanvas: vector pen strokes with undo/redo and raster export.

Observers subscribe to three events:
- ``stroke_started()``: pointer down
- ``stroke_committed()``: pointer up, stroke added to history
- ``history_changed(reason)``: reason is "stroke", "undo", "redo" or "clear"

Every history mutation bumps ``change_counter``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from PIL import Image, ImageDraw

from inkscribe.utils.raster import composite_on_white

logger = logging.getLogger(__name__)

EVENTS = ("stroke_started", "stroke_committed", "history_changed")

# Pointer moves shorter than this (both axes) are not recorded
_MIN_MOVE_PX = 2.0
# Export border for recognition: max(_INFER_BORDER_MIN, stroke width × factor)
_INFER_BORDER_MIN = 24
_INFER_BORDER_FACTOR = 2.2


@dataclass
class Stroke:
    points: list[tuple[float, float]] = field(default_factory=list)
    width_px: float = 14.0


class StrokeCanvas:
    """Fixed-size drawing surface; black ink on a transparent background."""

    def __init__(self, width: int = 512, height: int = 512, stroke_width_px: float = 14.0) -> None:
        self.width = max(1, int(width))
        self.height = max(1, int(height))
        self._stroke_width_px = max(1.0, float(stroke_width_px))
        self._strokes: list[Stroke] = []
        self._redo: list[Stroke] = []
        self._current: Stroke | None = None
        self._last_point: tuple[float, float] = (0.0, 0.0)
        self._change_counter = 0
        self._listeners: dict[str, list[Callable[..., None]]] = {e: [] for e in EVENTS}

    # -- observers ----------------------------------------------------------

    def subscribe(self, event: str, callback: Callable[..., None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown canvas event: {event}")
        self._listeners[event].append(callback)

    def unsubscribe(self, event: str, callback: Callable[..., None]) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def _emit(self, event: str, *args: object) -> None:
        for callback in list(self._listeners[event]):
            callback(*args)

    # -- state --------------------------------------------------------------

    @property
    def stroke_width_px(self) -> float:
        return self._stroke_width_px

    @stroke_width_px.setter
    def stroke_width_px(self, px: float) -> None:
        self._stroke_width_px = max(1.0, float(px))

    @property
    def change_counter(self) -> int:
        return self._change_counter

    @property
    def stroke_count(self) -> int:
        return len(self._strokes)

    def has_ink(self) -> bool:
        return bool(self._strokes)

    def can_undo(self) -> bool:
        return bool(self._strokes)

    def can_redo(self) -> bool:
        return bool(self._redo)

    # -- drawing ------------------------------------------------------------

    def begin_stroke(self, x: float, y: float) -> None:
        self._current = Stroke(points=[(x, y)], width_px=self._stroke_width_px)
        self._last_point = (x, y)
        self._emit("stroke_started")

    def extend_stroke(self, x: float, y: float) -> None:
        if self._current is None:
            return
        lx, ly = self._last_point
        if abs(x - lx) >= _MIN_MOVE_PX or abs(y - ly) >= _MIN_MOVE_PX:
            self._current.points.append((x, y))
            self._last_point = (x, y)

    def end_stroke(self, x: float | None = None, y: float | None = None) -> None:
        stroke = self._current
        if stroke is None:
            return
        if x is not None and y is not None and (x, y) != stroke.points[-1]:
            stroke.points.append((x, y))
        self._current = None
        self._strokes.append(stroke)
        # A new stroke invalidates redo history
        self._redo.clear()
        self._changed()
        self._emit("stroke_committed")
        self._emit("history_changed", "stroke")

    def add_stroke(self, points: Iterable[tuple[float, float]], width_px: float | None = None) -> None:
        """Replay a whole stroke as down / move... / up."""
        pts = [(float(x), float(y)) for x, y in points]
        if not pts:
            return
        if width_px is not None:
            self.stroke_width_px = width_px
        self.begin_stroke(*pts[0])
        for x, y in pts[1:-1]:
            self.extend_stroke(x, y)
        if len(pts) > 1:
            self.end_stroke(*pts[-1])
        else:
            self.end_stroke()

    def undo(self) -> bool:
        if not self._strokes:
            return False
        self._redo.append(self._strokes.pop())
        self._changed()
        self._emit("history_changed", "undo")
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._strokes.append(self._redo.pop())
        self._changed()
        self._emit("history_changed", "redo")
        return True

    def clear(self) -> None:
        had_content = bool(self._strokes or self._redo or self._current)
        self._strokes.clear()
        self._redo.clear()
        self._current = None
        if had_content:
            self._changed()
        self._emit("history_changed", "clear")

    def _changed(self) -> None:
        self._change_counter += 1

    # -- export -------------------------------------------------------------

    def render(self, border_px: int = 0) -> Image.Image:
        """Draw all strokes (plus any in progress) on a transparent RGBA image."""
        border = max(0, int(border_px))
        img = Image.new("RGBA", (self.width + 2 * border, self.height + 2 * border), (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)

        strokes = list(self._strokes)
        if self._current is not None:
            strokes.append(self._current)

        for stroke in strokes:
            pts = [(x + border, y + border) for x, y in stroke.points]
            width = max(1, int(round(stroke.width_px)))
            r = stroke.width_px / 2.0
            if len(pts) > 1:
                draw.line(pts, fill=(0, 0, 0, 255), width=width, joint="curve")
            # Round caps
            for cx, cy in (pts[0], pts[-1]):
                draw.ellipse((cx - r, cy - r, cx + r, cy + r), fill=(0, 0, 0, 255))

        return img

    def export_ink(self, border_px: int = 0) -> NDArray[np.uint8]:
        return np.array(self.render(border_px), dtype=np.uint8)

    def export_for_infer(self, stroke_width_px: float | None = None) -> NDArray[np.uint8]:
        """White-background RGB export with a border so edge strokes are not clipped."""
        width = stroke_width_px if stroke_width_px is not None else self._stroke_width_px
        border = max(_INFER_BORDER_MIN, int(width * _INFER_BORDER_FACTOR))
        return composite_on_white(self.export_ink(border_px=border))
