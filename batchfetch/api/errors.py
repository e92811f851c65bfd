from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from batchfetch.runtime.orchestrator import BatchAbortedError
from batchfetch.runtime.validation import BatchValidationError


logger = logging.getLogger(__name__)


@dataclass
class APIError(Exception):
    status_code: int
    code: str
    message: str
    details: dict[str, Any] | None = None

    @classmethod
    def invalid_batch(cls, exc: BatchValidationError) -> APIError:
        return cls(status_code=400, code="invalid_argument", message=str(exc), details=exc.details or None)

    @classmethod
    def batch_aborted(cls, exc: BatchAbortedError) -> APIError:
        # Fetch errors and cancellations look the same to the caller; the reason stays in server logs.
        return cls(status_code=502, code="batch_aborted", message=str(exc))


def error_response(*, status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> JSONResponse:
    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return JSONResponse(status_code=int(status_code), content=payload)


async def api_error_handler(req: Request, exc: APIError) -> JSONResponse:
    logger.info(f"client error on {req.url.path}: {exc.code}: {exc.message}")
    return error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def validation_error_handler(_req: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        status_code=400,
        code="invalid_argument",
        message="Request validation failed.",
        details={"errors": exc.errors()},
    )


async def unhandled_error_handler(req: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"unhandled error on {req.url.path}", exc_info=exc)
    return error_response(
        status_code=500,
        code="internal",
        message="Internal server error.",
        details={"type": type(exc).__name__},
    )
