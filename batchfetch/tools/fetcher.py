from __future__ import annotations

import asyncio
import logging

import httpx

from batchfetch.runtime.types import Job
from batchfetch.utils.cancel import CancellationToken


logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}


class FetchError(RuntimeError):
    """A single URL could not be retrieved. `kind` is invalid_url|timeout|network|protocol."""

    def __init__(self, kind: str, url: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.url = url


def _parse_url(raw: str) -> httpx.URL:
    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, TypeError) as e:
        raise FetchError("invalid_url", raw, f"Malformed URL {raw!r}: {e}") from e
    if url.scheme not in _ALLOWED_SCHEMES or not url.host:
        raise FetchError("invalid_url", raw, f"Malformed URL {raw!r}: expected an absolute http(s) URL")
    return url


class ResourceFetcher:
    """Performs one timed GET per Job and records the response status."""

    def __init__(self, client: httpx.AsyncClient, *, timeout_s: float = 1.0) -> None:
        self._client = client
        self._timeout_s = float(timeout_s)

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    async def _request_status(self, url: httpx.URL) -> int:
        # Only the status line matters; don't pull the body over the wire.
        request = self._client.build_request("GET", url, timeout=self._timeout_s)
        response = await self._client.send(request, stream=True)
        try:
            return response.status_code
        finally:
            await response.aclose()

    async def fetch(self, job: Job, *, slot: asyncio.Semaphore, cancel: CancellationToken) -> Job:
        async with slot:
            cancel.raise_if_cancelled()
            url = _parse_url(job.url)
            try:
                status = await cancel.guard(asyncio.wait_for(self._request_status(url), timeout=self._timeout_s))
            except (asyncio.TimeoutError, httpx.TimeoutException) as e:
                raise FetchError("timeout", job.url, f"Timed out after {self._timeout_s:g}s fetching {job.url}") from e
            except httpx.TransportError as e:
                if isinstance(e, (httpx.ProtocolError, httpx.UnsupportedProtocol)):
                    raise FetchError("protocol", job.url, f"Protocol error for {job.url}: {e}") from e
                raise FetchError("network", job.url, f"Network error for {job.url}: {e}") from e
            except httpx.HTTPError as e:
                raise FetchError("protocol", job.url, f"HTTP error for {job.url}: {e}") from e

            logger.info(f"got status {status} for {job.url}")
            job.set_status(status)
            return job
