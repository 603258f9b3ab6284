from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .channel import DEFAULT_CAPACITY


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Config:
    command: str = "java"
    workdir: str = field(default_factory=os.getcwd)
    plugins_dir: str = "plugins"
    queue_size: int = DEFAULT_CAPACITY
    stop_command: str = "stop"
    stop_timeout: float = 30.0
    mcp_port: int = 0       # 0 disables the MCP surface
    log_level: str = "INFO"

    def resolve_plugins_dir(self) -> Path:
        """Resolve the plugins directory; relative paths are taken from workdir.

        plugins          ->  <workdir>/plugins
        /srv/mc/plugins  ->  /srv/mc/plugins   (absolute paths used as-is)
        """
        path = Path(self.plugins_dir).expanduser()
        if path.is_absolute():
            return path
        return Path(self.workdir) / path

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        load_dotenv(env_path)

        queue_size = _int_env("MCWRAP_QUEUE_SIZE", DEFAULT_CAPACITY)
        if queue_size < 1:
            raise ValueError(f"MCWRAP_QUEUE_SIZE must be at least 1, got {queue_size}")

        log_level = os.getenv("MCWRAP_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"MCWRAP_LOG_LEVEL must be a logging level name, got {log_level!r}")

        return cls(
            command=os.getenv("MCWRAP_COMMAND", "java"),
            workdir=os.getenv("MCWRAP_WORKDIR") or os.getcwd(),
            plugins_dir=os.getenv("MCWRAP_PLUGINS_DIR", "plugins"),
            queue_size=queue_size,
            stop_command=os.getenv("MCWRAP_STOP_COMMAND", "stop"),
            stop_timeout=_float_env("MCWRAP_STOP_TIMEOUT", 30.0),
            mcp_port=_int_env("MCWRAP_MCP_PORT", 0),
            log_level=log_level,
        )
