from __future__ import annotations

import argparse
import os
import sys

from batchfetch.config.load_config import ConfigError, load_app_config


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Serve the batchfetch HTTP API (uvicorn).")
    p.add_argument("--host", default="", help="Bind host (default: server.host or env BATCHFETCH_HOST).")
    p.add_argument("--port", type=int, default=0, help="Bind port (default: server.port or env BATCHFETCH_PORT).")
    p.add_argument("--reload", action="store_true", help="Reload on code changes (development only).")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])

    try:
        cfg = load_app_config()
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 1

    try:
        import uvicorn  # type: ignore
    except Exception as e:
        print("Missing dependency: uvicorn. Install it in your runtime environment.", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return 1

    # uvicorn turns SIGINT/SIGTERM into a graceful shutdown: stop accepting, drain, then run lifespan exit.
    uvicorn.run(
        "batchfetch.api.app:create_app",
        factory=True,
        host=args.host or cfg.server.host,
        port=args.port or cfg.server.port,
        reload=bool(args.reload),
        timeout_graceful_shutdown=int(round(cfg.server.shutdown_timeout_s)),
        log_level=os.getenv("BATCHFETCH_LOG_LEVEL", "info"),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
