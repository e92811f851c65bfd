from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx
import pytest


# Ensure `import batchfetch...` works when running `pytest` from repo root.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


class FakeWeb:
    """In-process stand-in for remote URLs, served through httpx.MockTransport.

    Paths ending in `/slow` hang, `/boom` fails with a connection error, anything else
    answers 200 (or `?status=N`). Every call is recorded along with the peak number of
    requests in flight at once.
    """

    def __init__(self, *, delay_s: float = 0.0) -> None:
        self.delay_s = delay_s
        self.calls: list[str] = []
        self.active = 0
        self.peak_active = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(str(request.url))
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            path = request.url.path
            if path.endswith("/slow"):
                await asyncio.sleep(30)
            if path.endswith("/boom"):
                raise httpx.ConnectError("connection refused", request=request)
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            return httpx.Response(int(request.url.params.get("status", "200")))
        finally:
            self.active -= 1

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_web() -> FakeWeb:
    return FakeWeb()
