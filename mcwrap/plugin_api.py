"""Capability object handed to each plugin's ``setup(api)``."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .models import Hook, Trigger
from .registry import TriggerRegistry


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class PluginConfigError(Exception):
    """Raised when a plugin's config file cannot be read or written."""


class PluginApi:
    """Per-plugin view of the shared trigger registry.

    Log prefixes and the config file location are namespaced by the plugin
    name; the registry itself is shared by every plugin.
    """

    def __init__(self, name: str, registry: TriggerRegistry, plugins_dir: str | Path) -> None:
        self.name = name
        self._registry = registry
        self._plugins_dir = Path(plugins_dir)
        self._log = logging.getLogger(f"mcwrap.plugins.{name}")

    @property
    def config_path(self) -> Path:
        return self._plugins_dir / self.name / "config.json"

    def register(self, pattern: str, callback: Callable[..., Any]) -> Trigger:
        """Fire ``callback(line, *groups)`` for every server line matching ``pattern``.

        The callback may return a command string or a list of them; they are
        sent to the server's console in order.  Raises ``PatternError`` if the
        pattern does not compile.
        """
        return self._registry.register(pattern, callback, owner=self.name)

    def register_stop_hook(self, callback: Callable[[], Any]) -> Hook:
        return self._registry.register_stop_hook(callback, owner=self.name)

    def register_crash_hook(self, callback: Callable[[], Any]) -> Hook:
        return self._registry.register_crash_hook(callback, owner=self.name)

    def log(self, message: str, level: str = "info") -> None:
        self._log.log(_LEVELS.get(level.lower(), logging.INFO), message)

    def load_config(self, default: dict[str, Any]) -> dict[str, Any]:
        """Return this plugin's config, creating it from ``default`` if missing.

        An existing file wins over ``default`` entirely; keys are not merged.
        """
        path = self.config_path
        if path.exists():
            try:
                return json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise PluginConfigError(f"Config JSON syntax error in {path}: {exc}") from exc
            except OSError as exc:
                raise PluginConfigError(f"Failed to read config {path}: {exc}") from exc

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(default, indent=2) + "\n", encoding="utf-8")
        except (OSError, TypeError) as exc:
            raise PluginConfigError(f"Failed to write config {path}: {exc}") from exc
        self._log.info("Created new config file %s", path)
        return default
