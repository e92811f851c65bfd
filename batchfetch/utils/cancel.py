from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar


T = TypeVar("T")


class CancelledError(RuntimeError):
    """Raised when a cancellation request should abort the current batch."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    """One-shot cooperative cancellation flag shared by a batch and its fetchers.

    Tokens form a tree: `child()` derives a token that is cancelled together with
    its parent, while cancelling the child leaves the parent untouched.
    """

    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._cancel_requested = asyncio.Event()
        self._reason: str | None = None
        self._children: list[CancellationToken] = []
        if parent is not None:
            parent._children.append(self)
            if parent.cancelled:
                self.request_cancel(parent.reason or "cancelled")

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def request_cancel(self, reason: str = "cancelled") -> None:
        if self._cancel_requested.is_set():
            return
        self._reason = reason
        self._cancel_requested.set()
        for child in self._children:
            child.request_cancel(reason)

    def child(self) -> CancellationToken:
        return CancellationToken(parent=self)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancelledError(self._reason or "cancelled")

    async def wait(self) -> None:
        await self._cancel_requested.wait()

    async def guard(self, aw: Awaitable[T]) -> T:
        """Await `aw`, aborting it with CancelledError if the token fires first."""
        if self.cancelled:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise CancelledError(self._reason or "cancelled")
        task: asyncio.Future[Any] = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._cancel_requested.wait())
        finished = False
        try:
            await asyncio.wait((task, waiter), return_when=asyncio.FIRST_COMPLETED)
            finished = task.done()
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                # Let the inner call unwind (close sockets, release locks) before returning.
                await asyncio.gather(task, return_exceptions=True)
        if not finished:
            raise CancelledError(self._reason or "cancelled")
        return task.result()
