"""Wires plugins, the server process, and the stdio tasks together for one run.

    console ──► forwarder ──┐
    MCP tools ──────────────┼──► CommandChannel ──► stdin writer ──► server stdin
    server stdout ─► dispatcher ─┘        (triggers fire here)
    stdout EOF ──► supervisor.await_exit() ──► stop / crash hooks
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Coroutine
from typing import Any

import uvicorn

from .channel import ChannelClosed, CommandChannel, CommandSender
from .config import Config
from .dispatcher import OutputDispatcher
from .loader import load_plugins
from .models import ExitOutcome
from .plugin import CallbackInvoker, PythonCallbackInvoker
from .process_manager.server import create_server
from .process_manager.supervisor import ProcessSupervisor
from .registry import TriggerRegistry
from .stdio import ConsoleInput, forward_terminal, open_console_reader, run_input_writer

log = logging.getLogger(__name__)


class Wrapper:
    def __init__(
        self,
        config: Config,
        registry: TriggerRegistry | None = None,
        invoker: CallbackInvoker | None = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else TriggerRegistry()
        self.invoker = invoker if invoker is not None else PythonCallbackInvoker()
        self.supervisor = ProcessSupervisor(self.registry, self.invoker)
        self.channel: CommandChannel | None = None
        self._sender: CommandSender | None = None   # MCP tools + signal-driven stop
        self._uvicorn: uvicorn.Server | None = None
        self._stop_requested = False
        self._background: set[asyncio.Task[Any]] = set()

    def load_plugins(self) -> list[str]:
        names = load_plugins(self.config.resolve_plugins_dir(), self.registry)
        log.info(
            "Plugins loaded: %s. Registered %d triggers.",
            ", ".join(names) or "none",
            len(self.registry),
        )
        return names

    async def run(
        self,
        server_args: list[str],
        *,
        plugins: bool = True,
        console: bool = True,
        signals: bool = True,
    ) -> ExitOutcome:
        """Run the server until it exits and return how it exited.

        Raises ``SpawnError`` if the server cannot be started.
        """
        if plugins:
            self.load_plugins()

        log.info("Starting server with args: %s", " ".join(server_args))
        server = await self.supervisor.spawn(
            self.config.command, server_args, cwd=self.config.workdir,
        )

        channel = CommandChannel(self.config.queue_size)
        self.channel = channel
        dispatcher = OutputDispatcher(
            self.registry, self.invoker, channel.sender(), on_line=server.output.append,
        )
        self._sender = channel.sender()
        writer_task = asyncio.create_task(
            run_input_writer(channel, server.stdin), name="stdin-writer",
        )

        console_input: ConsoleInput | None = None
        console_sender: CommandSender | None = None
        console_task: asyncio.Task[None] | None = None
        if console:
            console_input = await open_console_reader()
            if console_input is not None:
                console_sender = channel.sender()
                console_task = asyncio.create_task(
                    forward_terminal(console_input.reader, console_sender),
                    name="console-forwarder",
                )

        mcp_task: asyncio.Task[None] | None = None
        if self.config.mcp_port:
            mcp_task = asyncio.create_task(self._serve_mcp(), name="mcp-server")

        if signals:
            self._install_signal_handlers()
        try:
            await dispatcher.run(server.stdout)
            return await self.supervisor.await_exit()
        finally:
            if signals:
                self._remove_signal_handlers()
            for task in self._background:
                task.cancel()
            if console_task is not None:
                console_task.cancel()
                await asyncio.gather(console_task, return_exceptions=True)
            if console_sender is not None:
                console_sender.close()
            if console_input is not None:
                console_input.close()
            if mcp_task is not None:
                if self._uvicorn is not None:
                    self._uvicorn.should_exit = True
                await asyncio.gather(mcp_task, return_exceptions=True)
            self._sender.close()
            await writer_task

    # ------------------------------------------------------------------
    # Operator actions (MCP tools, signals)
    # ------------------------------------------------------------------

    async def send_command(self, command: str) -> bool:
        if self._sender is None:
            return False
        try:
            await self._sender.send(command)
        except ChannelClosed:
            log.warning("Dropping command %r: command channel is closed", command)
            return False
        return True

    async def request_stop(self, force: bool = False) -> bool:
        """Ask the server to stop via its console, or kill it with ``force``."""
        if force:
            if self.supervisor.server is None:
                return False
            await self.supervisor.stop(force=True)
            return True
        return await self.send_command(self.config.stop_command)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _serve_mcp(self) -> None:
        server = create_server(self, port=self.config.mcp_port)
        app = server.streamable_http_app()
        uvi_config = uvicorn.Config(
            app, host="127.0.0.1", port=self.config.mcp_port, log_level="warning",
        )
        self._uvicorn = uvicorn.Server(uvi_config)
        log.info("MCP tools on http://127.0.0.1:%d/mcp", self.config.mcp_port)
        # _serve() skips uvicorn's capture_signals(), which would replace
        # our SIGINT/SIGTERM handlers
        await self._uvicorn._serve()

    def _spawn_background(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                log.debug("Cannot install handler for %s", sig.name)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                pass

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._stop_requested:
            log.warning("%s received again — killing the server", sig.name)
            self._spawn_background(self.request_stop(force=True))
            return
        self._stop_requested = True
        log.info("%s received — sending %r to the server", sig.name, self.config.stop_command)
        self._spawn_background(self._graceful_stop())

    async def _graceful_stop(self) -> None:
        await self.request_stop()
        await asyncio.sleep(self.config.stop_timeout)
        server = self.supervisor.server
        if server is not None and server.alive:
            log.warning(
                "Server still running %.0fs after %r — terminating",
                self.config.stop_timeout,
                self.config.stop_command,
            )
            await self.supervisor.stop()
