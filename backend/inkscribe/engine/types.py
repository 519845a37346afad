"""Value types shared by segmentation, recognition and the session controller."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned pixel box. ``right`` and ``bottom`` are exclusive."""

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def aspect_ratio(self) -> float:
        return self.width / max(self.height, 1)

    def expanded(self, pad: int) -> BoundingBox:
        return BoundingBox(self.left - pad, self.top - pad, self.right + pad, self.bottom + pad)

    def union(self, other: BoundingBox) -> BoundingBox:
        return BoundingBox(
            min(self.left, other.left),
            min(self.top, other.top),
            max(self.right, other.right),
            max(self.bottom, other.bottom),
        )

    def intersects(self, other: BoundingBox) -> bool:
        """Strict overlap test: boxes that only share an edge do not intersect."""
        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )


@dataclass(frozen=True)
class Candidate:
    """One recognizer hypothesis. ``percent`` is in 0..100."""

    text: str
    percent: float


@dataclass
class GlyphResult:
    """Recognition output for one segmented glyph region."""

    box: BoundingBox
    candidates: list[Candidate] = field(default_factory=list)

    @property
    def best(self) -> str:
        return self.candidates[0].text if self.candidates else ""
