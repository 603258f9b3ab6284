"""mcwrap — a game server wrapper with Python plugins.

Runs the server as a child process, echoes its console, and lets plugins
react to console lines with regex triggers that send commands back.

Run it in place of the server's launcher:
    mcwrap -Xmx2G -jar server.jar nogui
"""

from mcwrap.channel import ChannelClosed, CommandChannel
from mcwrap.config import Config
from mcwrap.models import ExitKind, ExitOutcome
from mcwrap.plugin_api import PluginApi
from mcwrap.registry import PatternError, TriggerRegistry
from mcwrap.wrapper import Wrapper

__version__ = "0.1.0"

__all__ = [
    "ChannelClosed",
    "CommandChannel",
    "Config",
    "ExitKind",
    "ExitOutcome",
    "PatternError",
    "PluginApi",
    "TriggerRegistry",
    "Wrapper",
]
