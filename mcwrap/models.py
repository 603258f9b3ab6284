from __future__ import annotations

import enum
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Registry entries — what plugins register
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Trigger:
    pattern: re.Pattern[str]
    callback: Callable[..., Any]
    owner: str = ""             # plugin identity, only used for log messages


@dataclass(frozen=True)
class Hook:
    callback: Callable[[], Any]
    owner: str = ""


# ---------------------------------------------------------------------------
# CallbackResult — tagged outcome of invoking one plugin callback
# ---------------------------------------------------------------------------

@dataclass
class CallbackResult:
    commands: list[str] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: BaseException) -> CallbackResult:
        return cls(error=error)


# ---------------------------------------------------------------------------
# Server process lifecycle
# ---------------------------------------------------------------------------

class ProcessStatus(str, enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"   # stop() in flight
    STOPPED = "stopped"     # exited with status 0
    CRASHED = "crashed"     # non-zero exit, signal, or wait failure


class ExitKind(str, enum.Enum):
    STOPPED = "stopped"
    CRASHED = "crashed"


@dataclass(frozen=True)
class ExitOutcome:
    kind: ExitKind
    exit_code: int | None = None

    @property
    def graceful(self) -> bool:
        return self.kind is ExitKind.STOPPED
