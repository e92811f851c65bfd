from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from batchfetch.api.errors import APIError
from batchfetch.config.load_config import AppConfig
from batchfetch.runtime.orchestrator import BatchAbortedError
from batchfetch.runtime.runner import BatchRunner
from batchfetch.runtime.validation import BatchValidationError, validate_batch
from batchfetch.utils.cancel import CancellationToken


logger = logging.getLogger(__name__)

router = APIRouter()


class JobResult(BaseModel):
    url: str = Field(description="URL exactly as submitted.")
    status: int = Field(description="HTTP status code returned by the URL.")


async def _read_body(request: Request, *, limit: int) -> bytes:
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise APIError(
            status_code=413,
            code="payload_too_large",
            message=f"Request body must be at most {limit} bytes.",
            details={"content_length": int(declared)},
        )
    buf = bytearray()
    async for chunk in request.stream():
        buf.extend(chunk)
        if len(buf) > limit:
            raise APIError(
                status_code=413,
                code="payload_too_large",
                message=f"Request body must be at most {limit} bytes.",
            )
    return bytes(buf)


async def _watch_disconnect(request: Request, cancel: CancellationToken, *, poll_s: float) -> None:
    while not cancel.cancelled:
        if await request.is_disconnected():
            logger.info("client disconnected, cancelling batch")
            cancel.request_cancel("client_disconnected")
            return
        await asyncio.sleep(poll_s)


@router.post("/fetch", response_model=list[JobResult])
async def fetch_urls(request: Request) -> list[dict[str, object]]:
    cfg: AppConfig = request.app.state.config
    runner: BatchRunner = request.app.state.batch_runner
    logger.info("got new request")

    body = await _read_body(request, limit=cfg.limits.max_body_bytes)
    try:
        decoded = json.loads(body)
    except ValueError as e:
        raise APIError(status_code=400, code="invalid_argument", message=f"Request body is not valid JSON: {e}") from e
    try:
        urls = validate_batch(
            decoded,
            max_urls=cfg.limits.max_urls,
            max_url_length=cfg.limits.max_url_length,
        )
    except BatchValidationError as e:
        raise APIError.invalid_batch(e) from e

    cancel = CancellationToken()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel, poll_s=cfg.server.disconnect_poll_s))
    try:
        jobs = await runner.execute(urls, cancel)
    except BatchAbortedError as e:
        raise APIError.batch_aborted(e) from e
    finally:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)

    return [j.as_dict() for j in jobs]
