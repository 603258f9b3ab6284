"""Trigger registry — the shared set of (pattern, callback) pairs and lifecycle hooks.

Every plugin registers into the same registry: there is a single trust
domain and no isolation between plugins' triggers.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from .models import Hook, Trigger

log = logging.getLogger(__name__)


class PatternError(ValueError):
    """Raised when a trigger pattern is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid trigger pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class TriggerRegistry:
    """Ordered, lock-guarded collection of triggers plus stop/crash hooks.

    Insertion order is significant: it is the order in which callbacks fire
    for a given line.

    The lock is held for one line's full dispatch pass, including every
    callback invocation in that pass.  Callbacks therefore must not block or
    await anything: a callback that hangs stalls all dispatch and every
    registration attempt from other threads.  Registering from inside a
    callback is allowed (the lock is re-entrant); the new trigger takes
    effect from the next line because a pass iterates a snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._triggers: list[Trigger] = []
        self._stop_hooks: list[Hook] = []
        self._crash_hooks: list[Hook] = []

    def register(
        self,
        pattern: str,
        callback: Callable[..., Any],
        owner: str = "",
    ) -> Trigger:
        """Compile ``pattern`` and append a trigger. Duplicates are allowed."""
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise PatternError(pattern, str(exc)) from exc

        trigger = Trigger(pattern=compiled, callback=callback, owner=owner)
        with self._lock:
            self._triggers.append(trigger)
        log.debug("Registered trigger %r for %s", pattern, owner or "<anonymous>")
        return trigger

    def register_stop_hook(self, callback: Callable[[], Any], owner: str = "") -> Hook:
        hook = Hook(callback=callback, owner=owner)
        with self._lock:
            self._stop_hooks.append(hook)
        return hook

    def register_crash_hook(self, callback: Callable[[], Any], owner: str = "") -> Hook:
        hook = Hook(callback=callback, owner=owner)
        with self._lock:
            self._crash_hooks.append(hook)
        return hook

    @contextmanager
    def dispatch_pass(self) -> Iterator[tuple[Trigger, ...]]:
        """Hold the registry lock for one line and yield the triggers in order."""
        with self._lock:
            yield tuple(self._triggers)

    def triggers(self) -> tuple[Trigger, ...]:
        with self._lock:
            return tuple(self._triggers)

    def stop_hooks(self) -> tuple[Hook, ...]:
        with self._lock:
            return tuple(self._stop_hooks)

    def crash_hooks(self) -> tuple[Hook, ...]:
        with self._lock:
            return tuple(self._crash_hooks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._triggers)
