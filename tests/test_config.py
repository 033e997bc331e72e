"""Tests for settings loading and logging setup."""

import logging
import tempfile
from pathlib import Path

import pytest

from tcn.config import _ENV_OVERRIDES, RateLimit, Settings, load_settings
from tcn.errors import ConfigError
from tcn.logging_config import setup_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(_ENV_OVERRIDES) + ["TCN_CONFIG"]:
        monkeypatch.delenv(name, raising=False)


def _write(tmpdir: str, text: str) -> Path:
    path = Path(tmpdir) / "tcn.yaml"
    path.write_text(text)
    return path


def test_defaults():
    settings = load_settings()

    assert settings == Settings()
    assert settings.create_limit == RateLimit(2, 60.0)
    assert settings.review_limit == RateLimit(2, 3.0)
    assert settings.report_limit == RateLimit(1, 15.0)
    assert settings.urgent_remind_after == 7200


def test_yaml_file_and_env_overrides(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(
            tmpdir,
            "gateway_url: http://bot:8001\n"
            "gateway_timeout: 5\n"
            "hub_guild: '444444444444444444'\n"
            "create_limit: {limit: 5, window: 30}\n"
            "unknown_key: ignored\n",
        )
        monkeypatch.setenv("TCN_GATEWAY_URL", "http://override:9000")
        monkeypatch.setenv("TCN_DATA_DIR", tmpdir)

        settings = load_settings(path)

    assert settings.gateway_url == "http://override:9000"
    assert settings.gateway_timeout == 5.0
    assert settings.hub_guild == "444444444444444444"
    assert settings.create_limit == RateLimit(5, 30.0)
    assert settings.data_dir == tmpdir


def test_config_path_from_environment(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("TCN_CONFIG", str(_write(tmpdir, "log_level: DEBUG\n")))

        assert load_settings().log_level == "DEBUG"


def test_empty_file_gives_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert load_settings(_write(tmpdir, "")) == Settings()


@pytest.mark.parametrize(
    "text",
    [
        "gateway_url: [unclosed\n",
        "- just\n- a list\n",
        "review_limit: 5\n",
        "gateway_timeout: soon\n",
    ],
)
def test_bad_config_raises(text):
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            load_settings(_write(tmpdir, text))


def test_missing_file_raises():
    with pytest.raises(ConfigError, match="Cannot read"):
        load_settings("/nonexistent/tcn.yaml")


def test_setup_logging_is_idempotent():
    logger = setup_logging("INFO")
    again = setup_logging("DEBUG")

    assert logger is again
    assert logger.name == "tcn"
    assert len(logger.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING
