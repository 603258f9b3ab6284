"""Console and server-stdin plumbing around the command channel."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import dataclass

from .channel import ChannelClosed, CommandChannel, CommandSender, normalize_command

log = logging.getLogger(__name__)


async def run_input_writer(channel: CommandChannel, stdin: asyncio.StreamWriter) -> None:
    """Drain the channel into the server's stdin, one full line at a time.

    Each command is written and flushed before the next is taken.  A write
    failure ends the writer for good: the receiving end of the channel is
    closed so producers get ``ChannelClosed`` instead of queueing forever.
    """
    try:
        while True:
            command = await channel.recv()
            if command is None:
                break
            stdin.write(normalize_command(command).encode("utf-8"))
            await stdin.drain()
    except OSError as exc:
        log.error("Failed to write to server stdin: %s", exc)
        channel.close_receiver()
        return

    log.debug("Command channel closed, closing server stdin")
    stdin.close()


async def forward_terminal(reader: asyncio.StreamReader, sender: CommandSender) -> None:
    """Forward operator-typed lines into the command channel until EOF."""
    try:
        while True:
            raw = await reader.readline()
            if not raw:
                break
            try:
                await sender.send(raw.decode("utf-8", errors="replace"))
            except ChannelClosed:
                break
    finally:
        sender.close()


@dataclass
class ConsoleInput:
    """The operator console attached to the event loop."""

    reader: asyncio.StreamReader
    transport: asyncio.ReadTransport
    fd: int

    def close(self) -> None:
        """Detach from the console and put it back into blocking mode.

        The transport reads from a duplicate of the stdin descriptor, so
        closing it leaves ``sys.stdin`` open.  The duplicate shares the
        terminal's O_NONBLOCK flag with the operator's shell.
        """
        if self.transport.is_closing():
            return
        try:
            os.set_blocking(self.fd, True)
        except OSError as exc:
            log.warning("Could not restore blocking console input: %s", exc)
        self.transport.close()


async def open_console_reader() -> ConsoleInput | None:
    """Attach an asyncio reader to ``sys.stdin``, or None if that is impossible."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        fd = sys.stdin.fileno()
        pipe = os.fdopen(os.dup(fd), "rb", buffering=0)
    except (AttributeError, ValueError, OSError) as exc:
        log.warning("Console input unavailable (%s), only plugins can send commands", exc)
        return None
    try:
        transport, _ = await loop.connect_read_pipe(lambda: protocol, pipe)
    except (ValueError, OSError, NotImplementedError) as exc:
        pipe.close()
        log.warning("Console input unavailable (%s), only plugins can send commands", exc)
        return None
    return ConsoleInput(reader, transport, fd)
