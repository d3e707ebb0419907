"""
Core FTP Client logic.
Includes connection managers, parser, command handler and transfer engine.
"""

from .parser import Parser, Reply, Target, parse_url
from .connection import ControlConnectionManager
from .data_connection import DataConnectionManager
from .commands import ClientCommandHandler, CommandStep, GreetingStep, Step
from .transfer import Control, Status, Transfer, get, get_async

__all__ = [
    "Parser",
    "Reply",
    "Target",
    "parse_url",
    "ControlConnectionManager",
    "DataConnectionManager",
    "ClientCommandHandler",
    "Step",
    "GreetingStep",
    "CommandStep",
    "Control",
    "Status",
    "Transfer",
    "get",
    "get_async",
]
