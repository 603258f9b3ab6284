from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

from .models import CallbackResult


def normalize_result(raw: Any) -> list[str]:
    """Turn whatever a plugin callback returned into a list of commands.

    Plugins may return nothing, a single command, or any iterable of
    commands.  Anything else is a plugin bug and raises ``TypeError``.

    Examples:
        None                         → []
        "say hi"                     → ["say hi"]
        ["say hi", "time set day"]   → ["say hi", "time set day"]
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    if inspect.isawaitable(raw):
        # Callbacks run under the registry lock and must not suspend
        if inspect.iscoroutine(raw):
            raw.close()
        raise TypeError("callback returned an awaitable; callbacks must be synchronous")
    if not isinstance(raw, Iterable):
        raise TypeError(f"callback returned {type(raw).__name__}, expected a list of commands")

    commands: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            raise TypeError(f"callback returned a non-string command: {item!r}")
        commands.append(item)
    return commands


class CallbackInvoker(ABC):
    """Calls into plugin code on behalf of the dispatch core.

    The core never interprets a callback handle; it only passes it back
    here together with the arguments.
    """

    @abstractmethod
    def invoke(self, handle: Any, args: Sequence[str] = ()) -> CallbackResult:
        ...


class PythonCallbackInvoker(CallbackInvoker):
    def invoke(self, handle: Any, args: Sequence[str] = ()) -> CallbackResult:
        try:
            return CallbackResult(commands=normalize_result(handle(*args)))
        except Exception as exc:
            return CallbackResult.failed(exc)
