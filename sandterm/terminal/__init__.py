"""
Terminal module: persistent terminal sessions over stateless sandboxes.

Provides:
- TerminalSessionManager: Facade owning every session
- SessionRegistry: Session table and sandbox bindings
- CommandPipeline: Asynchronous command execution with cd/export tracking
- BroadcastHub: Event fan-out to stream subscribers
"""
from sandterm.terminal.config import TerminalConfig
from sandterm.terminal.hub import BroadcastHub, Subscriber, SubscriberChannel
from sandterm.terminal.manager import (
    TerminalSessionManager,
    get_terminal_manager,
    reset_terminal_manager,
)
from sandterm.terminal.pipeline import CommandPipeline
from sandterm.terminal.registry import SessionRegistry

__all__ = [
    "TerminalConfig",
    "TerminalSessionManager",
    "get_terminal_manager",
    "reset_terminal_manager",
    "SessionRegistry",
    "CommandPipeline",
    "BroadcastHub",
    "Subscriber",
    "SubscriberChannel",
]
