"""Output dispatcher — the main loop over the server's stdout.

Every line is echoed, matched against the trigger registry, and the
commands returned by matching callbacks are sent back to the server.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .channel import ChannelClosed, CommandSender, normalize_command
from .plugin import CallbackInvoker
from .registry import TriggerRegistry

log = logging.getLogger(__name__)
console_log = logging.getLogger("mcwrap.console")


def _strip_line_ending(raw: bytes) -> str:
    line = raw.decode("utf-8", errors="replace")
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


async def _read_line(stream: asyncio.StreamReader) -> bytes | None:
    """Read one line, ``b""`` at EOF, or None if the line was over the limit.

    An over-long line is discarded up to and including its newline, however
    many chunks it arrives in.
    """
    overlong = False
    while True:
        try:
            raw = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as exc:
            raw = exc.partial  # unterminated last line, or b"" at EOF
        except asyncio.LimitOverrunError as exc:
            await stream.readexactly(exc.consumed)
            overlong = True
            continue
        return None if overlong else raw


class OutputDispatcher:
    def __init__(
        self,
        registry: TriggerRegistry,
        invoker: CallbackInvoker,
        sender: CommandSender,
        on_line: Callable[[str], None] | None = None,
    ) -> None:
        self.registry = registry
        self.invoker = invoker
        self.sender = sender
        self.on_line = on_line
        self.lines_seen = 0
        self.commands_sent = 0

    def dispatch_line(self, line: str) -> list[str]:
        """Run one dispatch pass over ``line`` and return the resulting commands.

        Callbacks receive ``(line, group1, group2, ...)``; a group that did
        not participate in the match is passed as ``""``.  A failing callback
        is logged and skipped; later triggers still fire.
        """
        commands: list[str] = []
        with self.registry.dispatch_pass() as triggers:
            for trigger in triggers:
                match = trigger.pattern.search(line)
                if match is None:
                    continue
                args = [line, *(group or "" for group in match.groups())]
                result = self.invoker.invoke(trigger.callback, args)
                if not result.ok:
                    log.error(
                        "Trigger %r from plugin '%s' failed on line %r",
                        trigger.pattern.pattern,
                        trigger.owner or "<anonymous>",
                        line,
                        exc_info=result.error,
                    )
                    continue
                commands.extend(result.commands)
        return commands

    async def run(self, stream: asyncio.StreamReader) -> None:
        """Dispatch every line until the server closes its stdout."""
        try:
            while True:
                raw = await _read_line(stream)
                if raw is None:
                    log.warning("Skipping server output line longer than the read limit")
                    continue
                if not raw:
                    break

                line = _strip_line_ending(raw)
                self.lines_seen += 1
                console_log.info("%s", line)
                if self.on_line is not None:
                    self.on_line(line)

                for command in self.dispatch_line(line):
                    await self._submit(command)
        finally:
            self.sender.close()
        log.info("Server output closed after %d line(s)", self.lines_seen)

    async def _submit(self, command: str) -> None:
        try:
            await self.sender.send(normalize_command(command))
        except ChannelClosed:
            log.warning("Dropping command %r: command channel is closed", command)
            return
        self.commands_sent += 1
        log.debug("Plugin command -> server: %s", command)
