"""Plugin discovery and loading.

A plugin is a directory under the plugins root containing ``__init__.py``
with a module-level ``setup(api)`` function:

    plugins/
      welcome/
        __init__.py      # def setup(api): api.register(r"^Player (\\w+) joined", ...)
        config.json      # created by api.load_config() on first run
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path

from .plugin_api import PluginApi
from .registry import TriggerRegistry

log = logging.getLogger(__name__)

MODULE_PREFIX = "mcwrap_plugins"


class PluginLoadError(Exception):
    pass


def discover_plugins(plugins_dir: str | Path) -> list[Path]:
    root = Path(plugins_dir)
    if not root.is_dir():
        return []
    return sorted(
        (p for p in root.iterdir() if p.is_dir() and (p / "__init__.py").is_file()),
        key=lambda p: p.name,
    )


def _import_plugin(plugin_dir: Path):
    module_name = f"{MODULE_PREFIX}.{plugin_dir.name}"
    spec = importlib.util.spec_from_file_location(
        module_name,
        plugin_dir / "__init__.py",
        submodule_search_locations=[str(plugin_dir)],
    )
    if spec is None or spec.loader is None:
        raise PluginLoadError(f"Cannot build import spec for {plugin_dir}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


def load_plugins(plugins_dir: str | Path, registry: TriggerRegistry) -> list[str]:
    """Import every plugin and run its ``setup(api)``. Returns the names loaded.

    A plugin that fails to import or set up is logged and skipped; the
    triggers it registered before failing stay registered.
    """
    root = Path(plugins_dir)
    if not root.is_dir():
        log.warning("No plugins directory at %s — running without plugins", root)
        return []

    loaded: list[str] = []
    for plugin_dir in discover_plugins(root):
        name = plugin_dir.name
        log.info("Loading plugin module: %s.%s", MODULE_PREFIX, name)
        try:
            module = _import_plugin(plugin_dir)
            setup = getattr(module, "setup", None)
            if not callable(setup):
                raise PluginLoadError(f"Plugin '{name}' has no setup(api) function")
            setup(PluginApi(name, registry, root))
        except Exception:
            log.exception("Failed to load plugin '%s'", name)
            continue
        loaded.append(name)

    return loaded
