"""Recognition job handles with cooperative cancellation."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class JobStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(eq=False)
class InferJob:
    """One recognition request for one lane.

    Cancellation only flips ``status``; the job checks it before touching
    lane state, so a superseded job's result is never written.
    """

    lane: str
    seq: int
    reason: str
    status: JobStatus = JobStatus.SCHEDULED
    error: str = ""

    @property
    def cancelled(self) -> bool:
        return self.status is JobStatus.CANCELLED

    @property
    def in_flight(self) -> bool:
        return self.status in (JobStatus.SCHEDULED, JobStatus.RUNNING)

    def cancel(self) -> None:
        if self.in_flight:
            self.status = JobStatus.CANCELLED

    def fail(self, message: str) -> None:
        self.status = JobStatus.FAILED
        self.error = message
