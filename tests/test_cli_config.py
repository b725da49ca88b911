"""Tests for CLI configuration module"""

import dataclasses
import logging
from pathlib import Path

import pytest

from catalog_autoconfig.cli.config import Config
from catalog_autoconfig.types.provider_config import DEFAULT_USER_AGENT
from catalog_autoconfig.utils.http import create_http_client
from catalog_autoconfig.utils.profiling import profile_time


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("AUTOCONFIG_STORE_DIR", "AUTOCONFIG_TIMEOUT", "AUTOCONFIG_USER_AGENT", "AUTOCONFIG_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_config_defaults():
    """Test configuration with no environment overrides"""
    config = Config.from_env()

    assert config.store_dir == Path.home() / ".catalog-autoconfig" / "providers"
    assert config.request_timeout == 15.0
    assert config.user_agent == DEFAULT_USER_AGENT
    assert config.log_level == "INFO"


def test_config_custom_env(monkeypatch, tmp_path):
    """Test configuration with custom environment variables"""
    monkeypatch.setenv("AUTOCONFIG_STORE_DIR", str(tmp_path))
    monkeypatch.setenv("AUTOCONFIG_TIMEOUT", "2.5")
    monkeypatch.setenv("AUTOCONFIG_USER_AGENT", "catalog-bot/1.0")
    monkeypatch.setenv("AUTOCONFIG_LOG_LEVEL", "debug")

    config = Config.from_env()
    assert config.store_dir == tmp_path
    assert config.request_timeout == 2.5
    assert config.user_agent == "catalog-bot/1.0"
    assert config.log_level == "DEBUG"


def test_invalid_timeout(monkeypatch):
    """Test configuration fails with a non-numeric or non-positive timeout"""
    monkeypatch.setenv("AUTOCONFIG_TIMEOUT", "soon")
    with pytest.raises(ValueError) as excinfo:
        Config.from_env()
    assert "AUTOCONFIG_TIMEOUT" in str(excinfo.value)

    monkeypatch.setenv("AUTOCONFIG_TIMEOUT", "0")
    with pytest.raises(ValueError) as excinfo:
        Config.from_env()
    assert "Must be greater than 0" in str(excinfo.value)


def test_invalid_log_level(monkeypatch):
    """Test configuration fails with an unknown log level"""
    monkeypatch.setenv("AUTOCONFIG_LOG_LEVEL", "LOUD")

    with pytest.raises(ValueError) as excinfo:
        Config.from_env()

    assert "Invalid log level" in str(excinfo.value)


def test_config_immutable():
    """Test that Config is immutable"""
    config = Config.from_env()

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.log_level = "DEBUG"  # type: ignore[misc]


@pytest.mark.asyncio
async def test_http_client_uses_settings():
    """Test the shared client carries timeout and user agent"""
    config = Config(store_dir=Path("/tmp"), request_timeout=3.0, user_agent="catalog-bot/1.0")

    async with create_http_client(config) as client:
        assert client.timeout.read == 3.0
        assert client.headers["User-Agent"] == "catalog-bot/1.0"
        assert client.follow_redirects is True


@pytest.mark.asyncio
async def test_profile_time_logs_async(caplog):
    """Test the profiling decorator logs START and DONE for coroutines"""

    @profile_time("Sample step")
    async def step():
        return 42

    with caplog.at_level(logging.INFO, logger="catalog_autoconfig.utils.profiling"):
        assert await step() == 42

    messages = [record.getMessage() for record in caplog.records]
    assert "[PERF] Sample step - START" in messages
    assert any(m.startswith("[PERF] Sample step - DONE in") for m in messages)


def test_profile_time_logs_failure(caplog):
    """Test the profiling decorator logs FAILED and re-raises"""

    @profile_time("Broken step")
    def step():
        raise RuntimeError("nope")

    with caplog.at_level(logging.INFO, logger="catalog_autoconfig.utils.profiling"):
        with pytest.raises(RuntimeError):
            step()

    assert any("[PERF] Broken step - FAILED" in record.getMessage() for record in caplog.records)
