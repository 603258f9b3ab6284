"""MCP server exposing the wrapped game server to operators over HTTP."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

if TYPE_CHECKING:
    from mcwrap.wrapper import Wrapper

DEFAULT_PORT = 8902


def create_server(wrapper: Wrapper, port: int = DEFAULT_PORT) -> FastMCP:
    """Create and configure the MCP operator server for one wrapper."""

    mcp = FastMCP(
        name="mcwrap",
        instructions=(
            "Operates a wrapped game server. Use send_command to type into the "
            "server console, get_output to read recent console output, "
            "server_status and list_triggers to inspect state, and stop_server "
            "to shut it down."
        ),
        host="127.0.0.1",
        port=port,
        stateless_http=True,
    )

    # ------------------------------------------------------------------
    # Tool: send_command
    # ------------------------------------------------------------------
    @mcp.tool()
    async def send_command(command: str) -> dict:
        """Send one console command to the server (e.g. "say hello", "list").

        Args:
            command: The command line, without a trailing newline.
        """
        sent = await wrapper.send_command(command)
        result: dict = {"command": command, "sent": sent}
        if not sent:
            result["error"] = "Command channel is closed"
        return result

    # ------------------------------------------------------------------
    # Tool: get_output
    # ------------------------------------------------------------------
    @mcp.tool()
    async def get_output(lines: int = 100) -> dict:
        """Get the most recent server console output.

        Args:
            lines: Number of lines to retrieve from the end of the history.
                   Defaults to 100. At most the last 2000 lines are kept.
        """
        server = wrapper.supervisor.server
        if server is None:
            return {"status": "not_started", "output": "", "seq": 0}
        return {
            "status": server.status.value,
            "output": server.output.tail(lines),
            "seq": server.output.seq,
        }

    # ------------------------------------------------------------------
    # Tool: server_status
    # ------------------------------------------------------------------
    @mcp.tool()
    async def server_status() -> dict:
        """Report the server's PID, status, exit code, uptime and plugin counts."""
        return wrapper.supervisor.status()

    # ------------------------------------------------------------------
    # Tool: list_triggers
    # ------------------------------------------------------------------
    @mcp.tool()
    async def list_triggers() -> dict:
        """List every registered plugin trigger in firing order."""
        triggers = [
            {"plugin": t.owner, "pattern": t.pattern.pattern}
            for t in wrapper.registry.triggers()
        ]
        return {
            "count": len(triggers),
            "triggers": triggers,
            "stop_hooks": len(wrapper.registry.stop_hooks()),
            "crash_hooks": len(wrapper.registry.crash_hooks()),
        }

    # ------------------------------------------------------------------
    # Tool: stop_server
    # ------------------------------------------------------------------
    @mcp.tool()
    async def stop_server(force: bool = False) -> dict:
        """Stop the server.

        Sends the configured stop command to the server console so it can
        save and exit cleanly.

        Args:
            force: If True, SIGKILL the server immediately instead.
        """
        try:
            requested = await wrapper.request_stop(force=force)
        except Exception as exc:
            return {"status": "error", "error": str(exc)}
        return {"status": "stopping" if requested else "error", "force": force}

    return mcp
