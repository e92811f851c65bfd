from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

from batchfetch.config.load_config import ConfigError, LimitsConfig, default_config_path, load_app_config


def test_default_config_matches_builtin_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BATCHFETCH_CONFIG_PATH", raising=False)
    monkeypatch.delenv("BATCHFETCH_HOST", raising=False)
    monkeypatch.delenv("BATCHFETCH_PORT", raising=False)
    cfg = load_app_config()
    assert cfg.limits.max_urls == 20
    assert cfg.limits.max_url_length == 2048
    assert cfg.limits.max_concurrent_batches == 100
    assert cfg.limits.max_concurrent_fetches == 4
    assert cfg.fetch.timeout_s == pytest.approx(1.0)
    assert cfg.server.port == 62985
    assert cfg.server.shutdown_timeout_s == pytest.approx(5.0)


def test_max_body_bytes_covers_max_batch() -> None:
    assert LimitsConfig().max_body_bytes == 20 * (2048 + 4) + 3


def test_partial_file_falls_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    with tempfile.TemporaryDirectory() as td:
        path = os.path.join(td, "cfg.toml")
        Path(path).write_text("[limits]\nmax_concurrent_fetches = 2\n\n[fetch]\ntimeout_s = 0.25\n", encoding="utf-8")
        monkeypatch.setenv("BATCHFETCH_CONFIG_PATH", path)
        monkeypatch.setenv("BATCHFETCH_PORT", "9001")

        assert default_config_path() == Path(path).resolve()
        cfg = load_app_config()
        assert cfg.limits.max_concurrent_fetches == 2
        assert cfg.limits.max_urls == 20
        assert cfg.fetch.timeout_s == pytest.approx(0.25)
        assert cfg.fetch.follow_redirects is True
        assert cfg.server.port == 9001


@pytest.mark.parametrize(
    "body",
    [
        "[limits]\nmax_urls = 0\n",
        "[limits]\nmax_concurrent_batches = \"many\"\n",
        "[fetch]\ntimeout_s = 0\n",
        "[fetch]\nfollow_redirects = \"sometimes\"\n",
        "[limits\n",
    ],
)
def test_invalid_values_raise_config_error(body: str) -> None:
    with tempfile.TemporaryDirectory() as td:
        path = Path(td) / "cfg.toml"
        path.write_text(body, encoding="utf-8")
        with pytest.raises(ConfigError):
            load_app_config(path)


def test_missing_file_raises_config_error() -> None:
    with tempfile.TemporaryDirectory() as td:
        with pytest.raises(ConfigError):
            load_app_config(Path(td) / "nope.toml")


def test_missing_default_file_falls_back_to_builtin_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    import batchfetch.config.load_config as load_config

    monkeypatch.delenv("BATCHFETCH_CONFIG_PATH", raising=False)
    monkeypatch.delenv("BATCHFETCH_HOST", raising=False)
    monkeypatch.setenv("BATCHFETCH_PORT", "9002")
    with tempfile.TemporaryDirectory() as td:
        # Same layout as an installed package: no config/ directory next to it.
        monkeypatch.setattr(load_config, "REPO_ROOT", Path(td))
        assert not default_config_path().exists()
        cfg = load_app_config()
    assert cfg.limits == LimitsConfig()
    assert cfg.fetch.timeout_s == pytest.approx(1.0)
    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 9002


def test_missing_file_named_by_env_raises_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    with tempfile.TemporaryDirectory() as td:
        monkeypatch.setenv("BATCHFETCH_CONFIG_PATH", os.path.join(td, "nope.toml"))
        with pytest.raises(ConfigError, match="not found"):
            load_app_config()
