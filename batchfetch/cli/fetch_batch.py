from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from dataclasses import replace
from pathlib import Path

import httpx

from batchfetch.config.load_config import AppConfig, ConfigError, load_app_config
from batchfetch.runtime.gate import AdmissionGate
from batchfetch.runtime.orchestrator import BatchAbortedError, BatchOrchestrator
from batchfetch.runtime.runner import BatchRunner
from batchfetch.runtime.types import Job
from batchfetch.runtime.validation import BatchValidationError, validate_batch
from batchfetch.tools.fetcher import ResourceFetcher
from batchfetch.utils.cancel import CancellationToken


EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_INVALID = 2


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch a batch of URLs concurrently; all succeed or none.")
    parser.add_argument("urls", nargs="*", help="URLs to fetch (in addition to --file).")
    parser.add_argument(
        "--file",
        default="",
        help="Read URLs from a file: a JSON array or one URL per line ('-' for stdin).",
    )
    parser.add_argument("--config", default="", help="Config TOML path (default: env BATCHFETCH_CONFIG_PATH).")
    parser.add_argument("--timeout", type=float, default=None, help="Override fetch.timeout_s.")
    parser.add_argument(
        "--max-concurrent-fetches",
        type=int,
        default=None,
        help="Override limits.max_concurrent_fetches.",
    )
    parser.add_argument("--log-level", default=os.getenv("BATCHFETCH_LOG_LEVEL", "warning"))
    return parser.parse_args(argv)


def _read_urls_file(path: str) -> list[str]:
    text = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    stripped = text.strip()
    if stripped.startswith("["):
        decoded = json.loads(stripped)
        if not isinstance(decoded, list):
            raise BatchValidationError("Expected a JSON array of URL strings.")
        return decoded
    return [line.strip() for line in text.splitlines() if line.strip() and not line.lstrip().startswith("#")]


async def run_once(
    urls: list[str],
    cfg: AppConfig,
    cancel: CancellationToken,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[Job]:
    async with httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(cfg.fetch.timeout_s),
        follow_redirects=cfg.fetch.follow_redirects,
        headers={"User-Agent": cfg.fetch.user_agent},
    ) as client:
        fetcher = ResourceFetcher(client, timeout_s=cfg.fetch.timeout_s)
        orchestrator = BatchOrchestrator(fetcher, max_concurrent_fetches=cfg.limits.max_concurrent_fetches)
        runner = BatchRunner(AdmissionGate(1), orchestrator)
        return await runner.execute(urls, cancel)


async def _main_async(urls: list[str], cfg: AppConfig) -> list[Job]:
    cancel = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.request_cancel, "interrupted")
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers; Ctrl+C then surfaces as KeyboardInterrupt.
        pass
    try:
        return await run_once(urls, cfg, cancel)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(level=str(args.log_level).upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        cfg = load_app_config(Path(args.config).expanduser().resolve() if args.config else None)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return EXIT_INVALID

    if args.timeout is not None and not args.timeout > 0:
        print(f"invalid option: --timeout must be > 0, got {args.timeout}", file=sys.stderr)
        return EXIT_INVALID
    if args.max_concurrent_fetches is not None and args.max_concurrent_fetches < 1:
        print(f"invalid option: --max-concurrent-fetches must be >= 1, got {args.max_concurrent_fetches}", file=sys.stderr)
        return EXIT_INVALID

    if args.timeout is not None:
        cfg = replace(cfg, fetch=replace(cfg.fetch, timeout_s=float(args.timeout)))
    if args.max_concurrent_fetches is not None:
        cfg = replace(cfg, limits=replace(cfg.limits, max_concurrent_fetches=int(args.max_concurrent_fetches)))

    try:
        raw_urls: list = list(args.urls)
        if args.file:
            raw_urls.extend(_read_urls_file(args.file))
        urls = validate_batch(raw_urls, max_urls=cfg.limits.max_urls, max_url_length=cfg.limits.max_url_length)
    except (BatchValidationError, ValueError, OSError) as e:
        print(f"invalid batch: {e}", file=sys.stderr)
        return EXIT_INVALID

    try:
        jobs = asyncio.run(_main_async(urls, cfg))
    except BatchAbortedError as e:
        print(f"batch aborted: {e}", file=sys.stderr)
        return EXIT_ABORTED

    print(json.dumps([j.as_dict() for j in jobs], ensure_ascii=False, indent=2))
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
