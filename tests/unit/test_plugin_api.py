"""Unit tests for PluginApi and the plugin loader."""

import json
import logging
import shutil
import textwrap

import pytest

from mcwrap.loader import discover_plugins, load_plugins
from mcwrap.plugin_api import PluginApi, PluginConfigError
from mcwrap.registry import PatternError


def write_plugin(root, name, source):
    plugin_dir = root / name
    plugin_dir.mkdir(parents=True)
    (plugin_dir / "__init__.py").write_text(textwrap.dedent(source))
    return plugin_dir


class TestPluginApi:
    def test_register_tags_trigger_with_plugin_name(self, registry, tmp_path):
        api = PluginApi("greeter", registry, tmp_path)

        trigger = api.register(r"joined", lambda line: None)

        assert trigger.owner == "greeter"
        assert registry.triggers() == (trigger,)

    def test_invalid_pattern_raises_to_plugin(self, registry, tmp_path):
        api = PluginApi("greeter", registry, tmp_path)

        with pytest.raises(PatternError):
            api.register("(", lambda line: None)
        assert len(registry) == 0

    def test_plugins_share_one_registry(self, registry, tmp_path):
        PluginApi("a", registry, tmp_path).register(r"x", lambda line: None)
        PluginApi("b", registry, tmp_path).register(r"x", lambda line: None)

        assert [t.owner for t in registry.triggers()] == ["a", "b"]

    def test_hooks_tagged_with_plugin_name(self, registry, tmp_path):
        api = PluginApi("saver", registry, tmp_path)
        api.register_stop_hook(lambda: None)
        api.register_crash_hook(lambda: None)

        assert registry.stop_hooks()[0].owner == "saver"
        assert registry.crash_hooks()[0].owner == "saver"

    def test_log_uses_plugin_logger(self, registry, tmp_path, caplog):
        api = PluginApi("greeter", registry, tmp_path)

        with caplog.at_level(logging.INFO, logger="mcwrap.plugins.greeter"):
            api.log("hello")
            api.log("careful", level="warning")

        assert [(r.name, r.levelno, r.getMessage()) for r in caplog.records] == [
            ("mcwrap.plugins.greeter", logging.INFO, "hello"),
            ("mcwrap.plugins.greeter", logging.WARNING, "careful"),
        ]


class TestLoadConfig:
    def test_creates_default_when_missing(self, registry, tmp_path):
        api = PluginApi("greeter", registry, tmp_path)

        config = api.load_config({"greeting": "hi", "count": 3})

        assert config == {"greeting": "hi", "count": 3}
        assert api.config_path == tmp_path / "greeter" / "config.json"
        assert json.loads(api.config_path.read_text()) == {"greeting": "hi", "count": 3}

    def test_existing_file_wins(self, registry, tmp_path):
        api = PluginApi("greeter", registry, tmp_path)
        api.config_path.parent.mkdir(parents=True)
        api.config_path.write_text('{"greeting": "yo"}')

        assert api.load_config({"greeting": "hi", "count": 3}) == {"greeting": "yo"}

    def test_broken_json_raises(self, registry, tmp_path):
        api = PluginApi("greeter", registry, tmp_path)
        api.config_path.parent.mkdir(parents=True)
        api.config_path.write_text("{not json")

        with pytest.raises(PluginConfigError):
            api.load_config({})

    def test_config_is_per_plugin(self, registry, tmp_path):
        PluginApi("a", registry, tmp_path).load_config({"who": "a"})
        PluginApi("b", registry, tmp_path).load_config({"who": "b"})

        assert json.loads((tmp_path / "a" / "config.json").read_text()) == {"who": "a"}
        assert json.loads((tmp_path / "b" / "config.json").read_text()) == {"who": "b"}


class TestLoader:
    def test_discovers_plugin_directories_sorted(self, tmp_path):
        write_plugin(tmp_path, "zeta", "def setup(api): pass\n")
        write_plugin(tmp_path, "alpha", "def setup(api): pass\n")
        (tmp_path / "not_a_plugin").mkdir()
        (tmp_path / "loose.py").write_text("")

        assert [p.name for p in discover_plugins(tmp_path)] == ["alpha", "zeta"]

    def test_loads_and_runs_setup(self, registry, tmp_path):
        write_plugin(tmp_path, "greeter", """
            def setup(api):
                api.register(r"^Player (\\w+) joined", lambda line, name: "say hi " + name)
        """)

        loaded = load_plugins(tmp_path, registry)

        assert loaded == ["greeter"]
        assert registry.triggers()[0].owner == "greeter"

    def test_plugin_can_import_its_own_modules(self, registry, tmp_path):
        plugin_dir = write_plugin(tmp_path, "helpers", """
            from .patterns import JOIN

            def setup(api):
                api.register(JOIN, lambda line, name: None)
        """)
        (plugin_dir / "patterns.py").write_text('JOIN = r"^(\\w+) joined"\n')

        assert load_plugins(tmp_path, registry) == ["helpers"]
        assert registry.triggers()[0].pattern.pattern == r"^(\w+) joined"

    def test_broken_plugins_are_skipped(self, registry, tmp_path, caplog):
        write_plugin(tmp_path, "a_syntax", "def setup(api) nope\n")
        write_plugin(tmp_path, "b_nosetup", "X = 1\n")
        write_plugin(tmp_path, "c_raises", "def setup(api):\n    raise RuntimeError('boom')\n")
        write_plugin(tmp_path, "d_badpattern", "def setup(api):\n    api.register('(', print)\n")
        write_plugin(tmp_path, "e_good", "def setup(api):\n    api.register('ok', print)\n")

        with caplog.at_level(logging.ERROR, logger="mcwrap.loader"):
            loaded = load_plugins(tmp_path, registry)

        assert loaded == ["e_good"]
        assert len(registry) == 1
        for name in ("a_syntax", "b_nosetup", "c_raises", "d_badpattern"):
            assert name in caplog.text

    def test_missing_directory_loads_nothing(self, registry, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="mcwrap.loader"):
            assert load_plugins(tmp_path / "missing", registry) == []
        assert "No plugins directory" in caplog.text

    def test_example_welcome_plugin(self, registry, invoker, tmp_path, example_plugins_dir):
        shutil.copytree(example_plugins_dir, tmp_path / "plugins")

        assert load_plugins(tmp_path / "plugins", registry) == ["welcome"]

        trigger = registry.triggers()[0]
        result = invoker.invoke(trigger.callback, ["Player Alice joined", "Alice"])
        assert result.commands == ["say welcome Alice"]
        assert (tmp_path / "plugins" / "welcome" / "config.json").exists()
        assert len(registry.stop_hooks()) == 1
        assert len(registry.crash_hooks()) == 1
