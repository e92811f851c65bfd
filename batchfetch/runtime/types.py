from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class InvalidTransitionError(RuntimeError):
    pass


class BatchState(str, Enum):
    PENDING = "pending"
    ADMITTED = "admitted"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({BatchState.COMPLETED, BatchState.FAILED, BatchState.CANCELLED})

_ALLOWED: dict[BatchState, frozenset[BatchState]] = {
    # A client may go away while its batch still waits for admission.
    BatchState.PENDING: frozenset({BatchState.ADMITTED, BatchState.CANCELLED}),
    BatchState.ADMITTED: frozenset({BatchState.RUNNING, BatchState.FAILED, BatchState.CANCELLED}),
    BatchState.RUNNING: _TERMINAL,
}


@dataclass
class Job:
    url: str
    status: int | None = None

    def set_status(self, status: int) -> None:
        if self.status is not None:
            raise RuntimeError(f"Job status already set for {self.url!r}")
        self.status = int(status)

    def as_dict(self) -> dict[str, Any]:
        return {"url": self.url, "status": self.status}


@dataclass
class BatchRun:
    """In-memory record of one request's trip through admission and fetching."""

    urls: list[str]
    batch_id: str = field(default_factory=lambda: f"batch_{uuid.uuid4().hex[:12]}")
    state: BatchState = BatchState.PENDING
    jobs: list[Job] = field(default_factory=list)
    error: str | None = None
    created_at: float = field(default_factory=time.time)
    ended_at: float | None = None

    def transition(self, new_state: BatchState, *, error: str | None = None) -> None:
        allowed = _ALLOWED.get(self.state, frozenset())
        if new_state not in allowed:
            raise InvalidTransitionError(f"{self.batch_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        if error is not None:
            self.error = error
        if new_state.terminal:
            self.ended_at = time.time()

    def completed_jobs(self) -> int:
        return sum(1 for j in self.jobs if j.status is not None)
