"""Command channel — bounded FIFO between command producers and the stdin writer.

Producers (console forwarder, output dispatcher, MCP surface) each hold
their own ``CommandSender``.  The channel closes exactly once, when the last
sender is closed; the single consumer then drains what is left and sees
``None``.
"""

from __future__ import annotations

import asyncio
import logging

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000  # in-flight commands

_CLOSED = object()  # wakes a receiver waiting on an empty queue


class ChannelClosed(Exception):
    """Raised when submitting to a channel nobody will drain anymore."""


def normalize_command(command: str) -> str:
    """Ensure a command ends with exactly one trailing newline."""
    return command if command.endswith("\n") else command + "\n"


class CommandSender:
    """A producer handle. Close it when the producer is done."""

    def __init__(self, channel: CommandChannel) -> None:
        self._channel = channel
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, command: str) -> None:
        """Submit a command, waiting while the channel is full.

        Raises ``ChannelClosed`` if this sender or the receiving end is closed.
        """
        if self._closed:
            raise ChannelClosed("sender is closed")
        await self._channel._put(command)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel._release_sender()

    async def __aenter__(self) -> CommandSender:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class CommandChannel:
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Channel capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        # asyncio.Queue wakes blocked putters in arrival order
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._senders = 0
        self._closed = False
        self._receiver_closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed or self._receiver_closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def sender(self) -> CommandSender:
        if self.closed:
            raise ChannelClosed("channel is closed")
        self._senders += 1
        return CommandSender(self)

    async def recv(self) -> str | None:
        """Next command in FIFO order, or ``None`` once closed and drained."""
        if self._receiver_closed:
            return None
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    def close_receiver(self) -> None:
        """Stop consuming: drop pending commands and fail every later send."""
        if self._receiver_closed:
            return
        self._receiver_closed = True
        dropped = self._discard_pending()
        if dropped:
            log.warning("Command channel receiver closed, dropped %d pending command(s)", dropped)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _put(self, command: str) -> None:
        if self.closed:
            raise ChannelClosed("channel is closed")
        await self._queue.put(command)
        if self._receiver_closed:
            # Receiver went away while we were blocked on a full queue.
            # Free the slot so the next blocked sender wakes up and fails too.
            self._discard_pending()
            raise ChannelClosed("channel receiver is closed")

    def _release_sender(self) -> None:
        self._senders -= 1
        if self._senders > 0 or self._closed:
            return
        self._closed = True
        log.debug("Command channel closed: no producers left")
        if not self._queue.full():
            self._queue.put_nowait(_CLOSED)

    def _discard_pending(self) -> int:
        dropped = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            if item is not _CLOSED:
                dropped += 1
