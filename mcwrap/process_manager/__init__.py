"""Server process management for mcwrap.

  - ProcessSupervisor: spawns the wrapped server and fires stop/crash hooks
  - create_server:     MCP tools for operators (send_command, get_output,
                       server_status, list_triggers, stop_server)
"""

from mcwrap.process_manager.supervisor import ProcessSupervisor, SpawnError
from mcwrap.process_manager.server import create_server

__all__ = ["ProcessSupervisor", "SpawnError", "create_server"]
