"""Pytest hooks and fixtures."""

import sys
from pathlib import Path

import pytest
from loguru import logger

from mcplink.config import clear_config_cache

STUB_SERVER = Path(__file__).parent / "fixtures" / "stub_server.py"


@pytest.fixture
def stub_settings():
    """Build TransportClient settings that launch the stub server with extra flags."""

    def _settings(*flags: str, **extra):
        return {
            "server_path": sys.executable,
            "server_args": [str(STUB_SERVER), *flags],
            **extra,
        }

    return _settings


@pytest.fixture
def log_messages():
    """Collect formatted mcplink log messages at DEBUG and above."""
    messages: list[str] = []
    logger.enable("mcplink")
    sink_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(sink_id)
    logger.disable("mcplink")


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Keep config lookups away from the real ~/.mcplink."""
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in ("MCPLINK_SERVER_PATH", "MCPLINK_REQUEST_TIMEOUT", "MCPLINK_READY_LINE"):
        monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()
