"""Unit tests for TriggerRegistry."""

import threading

import pytest

from mcwrap.registry import PatternError, TriggerRegistry


def noop(*args):
    return None


class TestRegister:
    """Tests for trigger registration."""

    def test_register_appends_in_order(self, registry):
        first = registry.register(r"^a", noop, owner="one")
        second = registry.register(r"^b", noop, owner="two")

        assert len(registry) == 2
        assert registry.triggers() == (first, second)
        assert first.pattern.pattern == "^a"
        assert first.owner == "one"

    def test_invalid_pattern_reports_error_and_adds_nothing(self, registry):
        registry.register(r"ok", noop)

        with pytest.raises(PatternError) as exc_info:
            registry.register("(", noop)

        assert exc_info.value.pattern == "("
        assert len(registry) == 1

    def test_pattern_error_is_a_value_error(self, registry):
        with pytest.raises(ValueError):
            registry.register("[unclosed", noop)

    def test_duplicate_patterns_are_kept(self, registry):
        registry.register(r"joined", noop)
        registry.register(r"joined", noop)

        assert len(registry) == 2

    def test_trigger_is_immutable(self, registry):
        trigger = registry.register(r"x", noop)

        with pytest.raises(AttributeError):
            trigger.pattern = None


class TestHooks:
    """Tests for stop/crash hook lists."""

    def test_hooks_kept_in_registration_order(self, registry):
        a = registry.register_stop_hook(noop, owner="a")
        b = registry.register_stop_hook(noop, owner="b")
        c = registry.register_crash_hook(noop, owner="c")

        assert registry.stop_hooks() == (a, b)
        assert registry.crash_hooks() == (c,)

    def test_hooks_do_not_count_as_triggers(self, registry):
        registry.register_stop_hook(noop)
        registry.register_crash_hook(noop)

        assert len(registry) == 0


class TestDispatchPass:
    """Tests for the lock held across one line's dispatch."""

    def test_yields_snapshot_in_order(self, registry):
        registry.register(r"1", noop)
        registry.register(r"2", noop)

        with registry.dispatch_pass() as triggers:
            assert [t.pattern.pattern for t in triggers] == ["1", "2"]

    def test_registration_inside_pass_applies_to_next_pass(self, registry):
        registry.register(r"1", noop)

        with registry.dispatch_pass() as triggers:
            registry.register(r"2", noop)
            assert len(triggers) == 1

        with registry.dispatch_pass() as triggers:
            assert len(triggers) == 2

    def test_registration_from_other_thread_waits_for_pass(self, registry):
        worker = threading.Thread(target=registry.register, args=(r"late", noop))

        with registry.dispatch_pass():
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert len(registry) == 0

        worker.join(timeout=5)
        assert not worker.is_alive()
        assert len(registry) == 1


def test_fresh_registry_is_empty():
    registry = TriggerRegistry()
    assert len(registry) == 0
    assert registry.triggers() == ()
