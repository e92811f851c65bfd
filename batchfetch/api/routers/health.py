from __future__ import annotations

import importlib.metadata
import time
from typing import Any

from fastapi import APIRouter
from fastapi import Request


router = APIRouter()


def _pkg_version(name: str) -> str | None:
    try:
        return str(importlib.metadata.version(name))
    except importlib.metadata.PackageNotFoundError:
        return None


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/version")
def version() -> dict[str, Any]:
    return {
        "service": "batchfetch",
        "api": "v1",
        "version": _pkg_version("batchfetch"),
        "deps": {
            "fastapi": _pkg_version("fastapi"),
            "uvicorn": _pkg_version("uvicorn"),
            "httpx": _pkg_version("httpx"),
        },
        "ts": time.time(),
    }


@router.get("/system/gate")
def system_gate(request: Request) -> dict[str, Any]:
    # Live admission counters plus the limits they enforce.
    runner = request.app.state.batch_runner
    cfg = request.app.state.config
    return {
        "ts": time.time(),
        "gate": runner.gate.snapshot(),
        "limits": {
            "max_urls": cfg.limits.max_urls,
            "max_url_length": cfg.limits.max_url_length,
            "max_body_bytes": cfg.limits.max_body_bytes,
            "max_concurrent_batches": cfg.limits.max_concurrent_batches,
            "max_concurrent_fetches": runner.orchestrator.max_concurrent_fetches,
            "fetch_timeout_s": cfg.fetch.timeout_s,
        },
    }
