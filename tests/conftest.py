"""Shared pytest fixtures for mcwrap tests."""

import sys
from pathlib import Path

import pytest

from mcwrap.config import Config
from mcwrap.plugin import PythonCallbackInvoker
from mcwrap.registry import TriggerRegistry

EXAMPLE_PLUGINS = Path(__file__).resolve().parent.parent / "example_plugins"

MCWRAP_ENV_VARS = [
    "MCWRAP_COMMAND",
    "MCWRAP_WORKDIR",
    "MCWRAP_PLUGINS_DIR",
    "MCWRAP_QUEUE_SIZE",
    "MCWRAP_STOP_COMMAND",
    "MCWRAP_STOP_TIMEOUT",
    "MCWRAP_MCP_PORT",
    "MCWRAP_LOG_LEVEL",
]


@pytest.fixture
def registry() -> TriggerRegistry:
    return TriggerRegistry()


@pytest.fixture
def invoker() -> PythonCallbackInvoker:
    return PythonCallbackInvoker()


@pytest.fixture
def example_plugins_dir() -> Path:
    return EXAMPLE_PLUGINS


@pytest.fixture
def python_server_config(tmp_path) -> Config:
    """
    Config that runs the current Python interpreter as the "server".

    Tests pass ``["-c", SCRIPT]`` as server args.
    """
    return Config(
        command=sys.executable,
        workdir=str(tmp_path),
        plugins_dir=str(tmp_path / "plugins"),
        queue_size=16,
        stop_timeout=5.0,
    )


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Unset every MCWRAP_* variable and run from an empty directory."""
    for name in MCWRAP_ENV_VARS:
        # setenv first so teardown also removes values load_dotenv() added
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # Keep a stray .env in the working tree out of the picture
    monkeypatch.chdir(tmp_path)
    return monkeypatch
