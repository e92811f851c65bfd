from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any


REPO_ROOT = Path(__file__).resolve().parents[2]


class ConfigError(RuntimeError):
    pass


def _as_int(value: Any, *, key: str) -> int:
    try:
        return int(value)
    except Exception as e:
        raise ConfigError(f"Invalid int for {key}: {value!r}") from e


def _as_str(value: Any, *, key: str) -> str:
    if value is None:
        raise ConfigError(f"Missing required config key: {key}")
    return str(value)

def _as_float(value: Any, *, key: str) -> float:
    try:
        return float(value)
    except Exception as e:
        raise ConfigError(f"Invalid float for {key}: {value!r}") from e


def _as_bool(value: Any, *, key: str) -> bool:
    if isinstance(value, bool):
        return value
    v = str(value).strip().lower()
    if v in {"1", "true", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "no", "n", "off"}:
        return False
    raise ConfigError(f"Invalid bool for {key}: {value!r}")


def _positive_int(value: Any, *, key: str) -> int:
    n = _as_int(value, key=key)
    if n < 1:
        raise ConfigError(f"Invalid {key}: must be >= 1, got {n}")
    return n


@dataclass(frozen=True)
class LimitsConfig:
    max_urls: int = 20
    max_url_length: int = 2048
    max_concurrent_batches: int = 100
    max_concurrent_fetches: int = 4

    @property
    def max_body_bytes(self) -> int:
        # Every URL costs its length plus quotes, comma and a space; the array adds brackets and slack.
        return self.max_urls * (self.max_url_length + 4) + 3


@dataclass(frozen=True)
class FetchConfig:
    timeout_s: float = 1.0
    follow_redirects: bool = True
    user_agent: str = "batchfetch/0.1"


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 62985
    shutdown_timeout_s: float = 5.0
    disconnect_poll_s: float = 0.1


@dataclass(frozen=True)
class AppConfig:
    limits: LimitsConfig = LimitsConfig()
    fetch: FetchConfig = FetchConfig()
    server: ServerConfig = ServerConfig()


def default_config_path() -> Path:
    raw = os.getenv("BATCHFETCH_CONFIG_PATH")
    if raw:
        return Path(raw).expanduser().resolve()
    return REPO_ROOT / "config" / "default.toml"


def _read_toml(cfg_path: Path) -> dict[str, Any]:
    try:
        import tomllib  # py3.11+
    except Exception as e:
        raise ConfigError("tomllib is required (Python 3.11+).") from e

    try:
        return tomllib.loads(cfg_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {cfg_path}: {e}") from e


def load_app_config(path: Path | None = None) -> AppConfig:
    explicit = path is not None or bool(os.getenv("BATCHFETCH_CONFIG_PATH"))
    cfg_path = path or default_config_path()
    if cfg_path.exists():
        raw = _read_toml(cfg_path)
    elif explicit:
        raise ConfigError(f"Config file not found: {cfg_path}")
    else:
        # Installed without the repo checkout: built-in defaults plus env overrides.
        raw = {}

    limits = raw.get("limits", {})
    fetch = raw.get("fetch", {})
    server = raw.get("server", {})

    d_limits, d_fetch, d_server = LimitsConfig(), FetchConfig(), ServerConfig()

    timeout_s = _as_float(fetch.get("timeout_s", d_fetch.timeout_s), key="fetch.timeout_s")
    if timeout_s <= 0:
        raise ConfigError(f"Invalid fetch.timeout_s: must be > 0, got {timeout_s}")

    # Deployment knobs may be overridden from the environment.
    host = os.getenv("BATCHFETCH_HOST") or server.get("host", d_server.host)
    port = os.getenv("BATCHFETCH_PORT") or server.get("port", d_server.port)

    return AppConfig(
        limits=LimitsConfig(
            max_urls=_positive_int(limits.get("max_urls", d_limits.max_urls), key="limits.max_urls"),
            max_url_length=_positive_int(
                limits.get("max_url_length", d_limits.max_url_length), key="limits.max_url_length"
            ),
            max_concurrent_batches=_positive_int(
                limits.get("max_concurrent_batches", d_limits.max_concurrent_batches),
                key="limits.max_concurrent_batches",
            ),
            max_concurrent_fetches=_positive_int(
                limits.get("max_concurrent_fetches", d_limits.max_concurrent_fetches),
                key="limits.max_concurrent_fetches",
            ),
        ),
        fetch=FetchConfig(
            timeout_s=timeout_s,
            follow_redirects=_as_bool(
                fetch.get("follow_redirects", d_fetch.follow_redirects), key="fetch.follow_redirects"
            ),
            user_agent=_as_str(fetch.get("user_agent", d_fetch.user_agent), key="fetch.user_agent"),
        ),
        server=ServerConfig(
            host=_as_str(host, key="server.host"),
            port=_as_int(port, key="server.port"),
            shutdown_timeout_s=_as_float(
                server.get("shutdown_timeout_s", d_server.shutdown_timeout_s), key="server.shutdown_timeout_s"
            ),
            disconnect_poll_s=_as_float(
                server.get("disconnect_poll_s", d_server.disconnect_poll_s), key="server.disconnect_poll_s"
            ),
        ),
    )
