from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

from batchfetch.runtime.types import BatchRun, Job
from batchfetch.tools.fetcher import FetchError
from batchfetch.utils.cancel import CancellationToken, CancelledError


logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, job: Job, *, slot: asyncio.Semaphore, cancel: CancellationToken) -> Job: ...


class BatchAbortedError(RuntimeError):
    """The batch was abandoned; the caller gets this instead of any result.

    `reason` (invalid_url|fetch_error|cancelled) and `completed` are for logs only.
    """

    def __init__(self, reason: str, message: str, *, url: str | None = None, completed: int = 0) -> None:
        super().__init__(message)
        self.reason = reason
        self.url = url
        self.completed = completed


def _abort_from_exception(exc: BaseException, *, completed: int) -> BatchAbortedError:
    if isinstance(exc, FetchError):
        reason = "invalid_url" if exc.kind == "invalid_url" else "fetch_error"
        return BatchAbortedError(reason, str(exc), url=exc.url, completed=completed)
    if isinstance(exc, (CancelledError, asyncio.CancelledError)):
        return BatchAbortedError("cancelled", f"Batch cancelled: {exc}", completed=completed)
    return BatchAbortedError("fetch_error", f"{type(exc).__name__}: {exc}", completed=completed)


class BatchOrchestrator:
    """Fans a batch out to concurrent fetchers and fails fast on the first error."""

    def __init__(self, fetcher: Fetcher, *, max_concurrent_fetches: int = 4) -> None:
        if max_concurrent_fetches < 1:
            raise ValueError("max_concurrent_fetches must be >= 1")
        self._fetcher = fetcher
        self._max_concurrent_fetches = int(max_concurrent_fetches)

    @property
    def max_concurrent_fetches(self) -> int:
        return self._max_concurrent_fetches

    async def run(
        self,
        urls: Sequence[str],
        cancel: CancellationToken,
        *,
        batch_run: BatchRun | None = None,
    ) -> list[Job]:
        jobs = [Job(url=u) for u in urls]
        if batch_run is not None:
            batch_run.jobs = jobs
        label = batch_run.batch_id if batch_run is not None else "batch"

        batch_cancel = cancel.child()
        slot = asyncio.Semaphore(self._max_concurrent_fetches)
        tasks = [
            asyncio.create_task(self._fetcher.fetch(job, slot=slot, cancel=batch_cancel), name=f"fetch[{i}]")
            for i, job in enumerate(jobs)
        ]
        cancel_waiter = asyncio.create_task(cancel.wait(), name="cancel-waiter")

        pending = set(tasks)
        try:
            while pending:
                done, _ = await asyncio.wait(pending | {cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
                # Errors win over completions and over an external cancel seen in the same wake-up.
                for task in tasks:
                    if task in done and (task.cancelled() or task.exception() is not None):
                        exc = asyncio.CancelledError() if task.cancelled() else task.exception()
                        raise _abort_from_exception(exc, completed=sum(1 for j in jobs if j.status is not None))
                if cancel_waiter in done:
                    raise BatchAbortedError(
                        "cancelled",
                        f"Batch cancelled: {cancel.reason or 'cancelled'}",
                        completed=sum(1 for j in jobs if j.status is not None),
                    )
                pending -= done
        except BatchAbortedError as e:
            logger.warning(f"{label} aborted ({e.reason}) after {e.completed}/{len(jobs)} jobs: {e}")
            raise
        finally:
            batch_cancel.request_cancel("batch_aborted")
            cancel_waiter.cancel()
            # Stragglers' results are discarded, but each must release its slot before we return.
            await asyncio.gather(*tasks, cancel_waiter, return_exceptions=True)

        logger.info(f"{label} done: {len(jobs)} jobs")
        return jobs
