from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from batchfetch.runtime.types import BatchRun, BatchState
from batchfetch.utils.cancel import CancellationToken, CancelledError


logger = logging.getLogger(__name__)


class AdmissionGate:
    """Bounds how many batches run at once across the whole process.

    Waiters queue on an asyncio.Semaphore with no timeout and no queue cap.
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = int(capacity)
        self._sem = asyncio.Semaphore(self._capacity)
        self._in_use = 0
        self._waiting = 0
        self._peak_in_use = 0
        self._admitted_total = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def waiting(self) -> int:
        return self._waiting

    def snapshot(self) -> dict[str, Any]:
        return {
            "capacity": self._capacity,
            "in_use": self._in_use,
            "waiting": self._waiting,
            "peak_in_use": self._peak_in_use,
            "admitted_total": self._admitted_total,
        }

    async def _acquire(self, batch_run: BatchRun, cancel: CancellationToken) -> None:
        self._waiting += 1
        try:
            await cancel.guard(self._sem.acquire())
        except CancelledError:
            batch_run.transition(BatchState.CANCELLED, error="cancelled while waiting for admission")
            raise
        finally:
            self._waiting -= 1
        self._in_use += 1
        self._admitted_total += 1
        self._peak_in_use = max(self._peak_in_use, self._in_use)

    def _release(self) -> None:
        self._in_use -= 1
        self._sem.release()

    @asynccontextmanager
    async def admit(self, batch_run: BatchRun, cancel: CancellationToken) -> AsyncIterator[BatchRun]:
        await self._acquire(batch_run, cancel)
        batch_run.transition(BatchState.ADMITTED)
        logger.info(f"{batch_run.batch_id} admitted ({self._in_use}/{self._capacity} in use)")
        try:
            yield batch_run
        finally:
            try:
                if not batch_run.state.terminal:
                    batch_run.transition(BatchState.FAILED, error=batch_run.error or "batch ended without a result")
            finally:
                self._release()
            logger.info(f"{batch_run.batch_id} released gate slot ({batch_run.state.value})")
