from __future__ import annotations

import logging
from typing import Sequence

from batchfetch.runtime.gate import AdmissionGate
from batchfetch.runtime.orchestrator import BatchAbortedError, BatchOrchestrator
from batchfetch.runtime.types import BatchRun, BatchState, Job
from batchfetch.utils.cancel import CancellationToken, CancelledError


logger = logging.getLogger(__name__)


class BatchRunner:
    """Admits a batch through the gate, runs it, and records its terminal state."""

    def __init__(self, gate: AdmissionGate, orchestrator: BatchOrchestrator) -> None:
        self._gate = gate
        self._orchestrator = orchestrator

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    @property
    def orchestrator(self) -> BatchOrchestrator:
        return self._orchestrator

    async def execute(
        self,
        urls: Sequence[str],
        cancel: CancellationToken,
        *,
        batch_run: BatchRun | None = None,
    ) -> list[Job]:
        run = batch_run or BatchRun(urls=list(urls))
        logger.info(f"{run.batch_id} pending: {len(run.urls)} urls")
        try:
            async with self._gate.admit(run, cancel):
                run.transition(BatchState.RUNNING)
                try:
                    jobs = await self._orchestrator.run(run.urls, cancel, batch_run=run)
                except BatchAbortedError as e:
                    terminal = BatchState.CANCELLED if e.reason == "cancelled" else BatchState.FAILED
                    run.transition(terminal, error=str(e))
                    raise
                run.transition(BatchState.COMPLETED)
        except CancelledError as e:
            # Only the gate raises this: the client left before the batch was admitted.
            raise BatchAbortedError("cancelled", f"Batch cancelled: {e.reason}") from e

        logger.info(f"{run.batch_id} completed")
        return jobs
