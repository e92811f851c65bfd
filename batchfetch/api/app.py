from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from batchfetch.api.errors import APIError, api_error_handler, unhandled_error_handler, validation_error_handler
from batchfetch.config.load_config import AppConfig, load_app_config
from batchfetch.runtime.gate import AdmissionGate
from batchfetch.runtime.orchestrator import BatchOrchestrator
from batchfetch.runtime.runner import BatchRunner
from batchfetch.tools.fetcher import ResourceFetcher

from .routers.fetch import fetch_urls
from .routers.fetch import router as fetch_router
from .routers.health import router as health_router


logger = logging.getLogger(__name__)


def _cors_origins_from_env() -> list[str]:
    raw = os.getenv("BATCHFETCH_CORS_ORIGINS", "").strip()
    if not raw:
        return []
    return [o.strip() for o in raw.split(",") if o.strip()]


def create_app(config: AppConfig | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    cfg = config or load_app_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # noqa: ANN202
        # One pooled client for every outbound fetch; closed after uvicorn drains in-flight requests.
        client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(cfg.fetch.timeout_s),
            follow_redirects=cfg.fetch.follow_redirects,
            headers={"User-Agent": cfg.fetch.user_agent},
        )
        fetcher = ResourceFetcher(client, timeout_s=cfg.fetch.timeout_s)
        orchestrator = BatchOrchestrator(fetcher, max_concurrent_fetches=cfg.limits.max_concurrent_fetches)
        app.state.batch_runner = BatchRunner(AdmissionGate(cfg.limits.max_concurrent_batches), orchestrator)
        logger.info(
            f"batchfetch ready: {cfg.limits.max_concurrent_batches} batches x "
            f"{cfg.limits.max_concurrent_fetches} fetches, timeout {cfg.fetch.timeout_s:g}s"
        )
        try:
            yield
        finally:
            await client.aclose()
            logger.info("batchfetch stopped")

    app = FastAPI(title="batchfetch API", version="0.1.0", lifespan=lifespan)
    app.state.config = cfg

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    origins = _cors_origins_from_env()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health_router, prefix="/api/v1", tags=["system"])
    app.include_router(fetch_router, prefix="/api/v1", tags=["fetch"])
    # Bare root path kept for clients that POST the URL list to "/".
    app.add_api_route("/", fetch_urls, methods=["POST"], include_in_schema=False)

    return app
