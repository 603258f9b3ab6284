"""Process Supervisor — spawns the wrapped server and fires lifecycle hooks on exit."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from mcwrap.models import ExitKind, ExitOutcome, Hook, ProcessStatus
from mcwrap.plugin import CallbackInvoker
from mcwrap.registry import TriggerRegistry

log = logging.getLogger(__name__)

DEFAULT_STREAM_LIMIT = 1024 * 1024  # longest server output line we accept


class SpawnError(Exception):
    """The server process could not be started."""


class OutputHistory:
    """The last ``max_lines`` lines the server printed.

    ``seq`` counts every line ever recorded, so a reader can tell how many
    lines it missed between two polls.
    """

    def __init__(self, max_lines: int = 2000) -> None:
        self._lines: deque[str] = deque(maxlen=max_lines)
        self.seq = 0

    def append(self, line: str) -> None:
        self._lines.append(line.rstrip("\r\n"))
        self.seq += 1

    def __len__(self) -> int:
        return len(self._lines)

    def tail(self, count: int | None = None) -> str:
        """Return the newest ``count`` lines (all kept lines if None), newline-terminated."""
        lines = list(self._lines)
        if count is not None:
            lines = lines[-count:] if count > 0 else []
        return "".join(line + "\n" for line in lines)


@dataclass
class ServerProcess:
    """State for the wrapped server process."""

    command: str
    args: list[str]
    cwd: str
    status: ProcessStatus = ProcessStatus.STARTING
    pid: int | None = None
    exit_code: int | None = None
    start_time: float = field(default_factory=time.time)
    stop_time: float | None = None
    output: OutputHistory = field(default_factory=OutputHistory)
    _process: asyncio.subprocess.Process | None = field(default=None, repr=False)

    @property
    def stdin(self) -> asyncio.StreamWriter:
        assert self._process is not None and self._process.stdin is not None
        return self._process.stdin

    @property
    def stdout(self) -> asyncio.StreamReader:
        assert self._process is not None and self._process.stdout is not None
        return self._process.stdout

    @property
    def alive(self) -> bool:
        return self.status in (ProcessStatus.STARTING, ProcessStatus.RUNNING, ProcessStatus.STOPPING)


class ProcessSupervisor:
    """Owns the single server child process and its lifecycle hooks.

    There is no restart policy: once the server exits, ``await_exit`` fires
    the stop or crash hooks and the supervisor is done.
    """

    def __init__(self, registry: TriggerRegistry, invoker: CallbackInvoker) -> None:
        self.registry = registry
        self.invoker = invoker
        self.server: ServerProcess | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def spawn(
        self,
        command: str,
        args: list[str] | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        *,
        stream_limit: int = DEFAULT_STREAM_LIMIT,
    ) -> ServerProcess:
        """Start the server with piped stdin/stdout. Raises SpawnError on failure."""
        if self.server is not None and self.server.alive:
            raise RuntimeError(f"Server already running (pid={self.server.pid})")

        resolved_cwd = cwd or os.getcwd()
        if not os.path.isdir(resolved_cwd):
            raise SpawnError(f"Working directory does not exist: {resolved_cwd}")

        server = ServerProcess(command=command, args=list(args or []), cwd=resolved_cwd)
        self.server = server

        spawn_env = os.environ.copy()
        if env:
            spawn_env.update(env)

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *server.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                cwd=resolved_cwd,
                env=spawn_env,
                limit=stream_limit,
                # Own process group: console Ctrl-C reaches the wrapper, which
                # then stops the server through its console
                preexec_fn=os.setsid,
            )
        except OSError as exc:
            server.status = ProcessStatus.CRASHED
            raise SpawnError(f"Failed to start {command!r}: {exc}") from exc

        server._process = process
        server.pid = process.pid
        server.status = ProcessStatus.RUNNING
        log.info("Server started (pid=%s): %s %s", process.pid, command, " ".join(server.args))
        return server

    async def await_exit(self) -> ExitOutcome:
        """Wait for the server to exit, classify the exit, and run the matching hooks.

        Call only after the server's stdout has reached EOF.
        """
        server = self._require_server()
        proc = server._process
        assert proc is not None

        try:
            code: int | None = await proc.wait()
        except OSError as exc:
            log.error("Failed to wait on server process: %s", exc)
            code = None

        server.exit_code = code
        server.stop_time = time.time()

        if code == 0:
            server.status = ProcessStatus.STOPPED
            log.info("Server stopped gracefully (exit code 0)")
            self._run_hooks(self.registry.stop_hooks(), "stop")
            return ExitOutcome(ExitKind.STOPPED, 0)

        server.status = ProcessStatus.CRASHED
        log.warning("Server crashed or stopped unexpectedly (exit code %s)", code)
        self._run_hooks(self.registry.crash_hooks(), "crash")
        return ExitOutcome(ExitKind.CRASHED, code)

    async def stop(self, force: bool = False, timeout: float = 10.0) -> ServerProcess:
        """Signal the server's process group. Sends SIGTERM, waits, then SIGKILL.

        Exit classification and hooks are left to ``await_exit``.
        """
        server = self._require_server()
        proc = server._process
        if proc is None or proc.returncode is not None:
            return server

        server.status = ProcessStatus.STOPPING
        try:
            pgid = os.getpgid(proc.pid)
        except (ProcessLookupError, OSError):
            return server

        sig = signal.SIGKILL if force else signal.SIGTERM
        log.warning("Sending %s to server process group %s", sig.name, pgid)
        try:
            os.killpg(pgid, sig)
        except (ProcessLookupError, OSError):
            return server

        if not force:
            try:
                await asyncio.wait_for(proc.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                log.warning("Server ignored SIGTERM for %.0fs, sending SIGKILL", timeout)
                try:
                    os.killpg(pgid, signal.SIGKILL)
                except (ProcessLookupError, OSError):
                    pass
        return server

    def status(self) -> dict[str, Any]:
        """Summary of the server process and registered plugin hooks."""
        result: dict[str, Any] = {
            "status": "not_started",
            "triggers": len(self.registry),
            "stop_hooks": len(self.registry.stop_hooks()),
            "crash_hooks": len(self.registry.crash_hooks()),
        }
        server = self.server
        if server is None:
            return result

        uptime = None
        if server.alive:
            uptime = round(time.time() - server.start_time, 1)
        elif server.stop_time:
            uptime = round(server.stop_time - server.start_time, 1)

        result.update({
            "command": server.command,
            "args": server.args,
            "cwd": server.cwd,
            "pid": server.pid,
            "status": server.status.value,
            "exit_code": server.exit_code,
            "start_time": server.start_time,
            "uptime_seconds": uptime,
            "output_lines": server.output.seq,
        })
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_server(self) -> ServerProcess:
        if self.server is None or self.server._process is None:
            raise RuntimeError("Server has not been spawned")
        return self.server

    def _run_hooks(self, hooks: tuple[Hook, ...], kind: str) -> None:
        """Run hooks one at a time in registration order; a failure doesn't stop the rest."""
        for hook in hooks:
            result = self.invoker.invoke(hook.callback)
            if not result.ok:
                log.error(
                    "%s hook from plugin '%s' failed",
                    kind.capitalize(),
                    hook.owner or "<anonymous>",
                    exc_info=result.error,
                )
            elif result.commands:
                # The server is gone; there is no stdin left to send these to
                log.warning(
                    "Ignoring %d command(s) returned by %s hook from plugin '%s'",
                    len(result.commands),
                    kind,
                    hook.owner or "<anonymous>",
                )
