"""Connected-component labeling and union-find over flat index arrays."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from inkscribe.engine.types import BoundingBox


@dataclass
class Component:
    """A maximal 4-connected ink blob."""

    box: BoundingBox
    area: int


def find_components(mask: NDArray[np.bool_]) -> list[Component]:
    """Label 4-connected ink blobs with a BFS flood fill.

    Seeds are visited in row-major order, so components come out in the
    order their top-left-most pixel appears. Each ink pixel is enqueued
    exactly once.
    """
    h, w = mask.shape
    ink = mask.ravel().tolist()
    visited = bytearray(h * w)
    components: list[Component] = []

    for seed in np.flatnonzero(mask).tolist():
        if visited[seed]:
            continue
        visited[seed] = 1
        queue = deque([seed])

        min_y, min_x = divmod(seed, w)
        max_y, max_x = min_y, min_x
        area = 0

        while queue:
            idx = queue.popleft()
            y, x = divmod(idx, w)
            area += 1
            if x < min_x:
                min_x = x
            elif x > max_x:
                max_x = x
            if y < min_y:
                min_y = y
            elif y > max_y:
                max_y = y

            # 4-neighborhood
            if x > 0:
                n = idx - 1
                if ink[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
            if x < w - 1:
                n = idx + 1
                if ink[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
            if y > 0:
                n = idx - w
                if ink[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
            if y < h - 1:
                n = idx + w
                if ink[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)

        components.append(
            Component(box=BoundingBox(min_x, min_y, max_x + 1, max_y + 1), area=area)
        )

    return components


def union_find_root(parent: list[int], x: int) -> int:
    while parent[x] != x:
        parent[x] = parent[parent[x]]
        x = parent[x]
    return x


def union_find_merge(parent: list[int], rank: list[int], a: int, b: int) -> None:
    ra, rb = union_find_root(parent, a), union_find_root(parent, b)
    if ra == rb:
        return
    if rank[ra] < rank[rb]:
        ra, rb = rb, ra
    parent[rb] = ra
    if rank[ra] == rank[rb]:
        rank[ra] += 1


def tighten_to_ink(mask: NDArray[np.bool_], box: BoundingBox) -> BoundingBox | None:
    """Shrink ``box`` to the ink it actually contains, or None if it holds none."""
    h, w = mask.shape
    left = min(max(box.left, 0), w - 1)
    right = min(max(box.right, left + 1), w)
    top = min(max(box.top, 0), h - 1)
    bottom = min(max(box.bottom, top + 1), h)

    window = mask[top:bottom, left:right]
    cols = np.flatnonzero(window.any(axis=0))
    rows = np.flatnonzero(window.any(axis=1))
    if len(cols) == 0 or len(rows) == 0:
        return None
    return BoundingBox(
        left + int(cols[0]),
        top + int(rows[0]),
        left + int(cols[-1]) + 1,
        top + int(rows[-1]) + 1,
    )
