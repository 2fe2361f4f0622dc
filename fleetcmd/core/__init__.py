"""Core module: data models, session protocol, dispatcher and errors.

This module contains the foundational components of the fleet command
runner: the immutable device and result models, the abstract transport
capability, the per-device session state machine, the bounded-concurrency
dispatcher, and the custom exception hierarchy.
"""

from .base_transport import Transport
from .dispatcher import Dispatcher
from .exceptions import (
    AuthError,
    ChannelError,
    CommandError,
    ConfigurationError,
    ConnectError,
    FleetCmdError,
    InventoryError,
    SessionCancelled,
    SessionError,
    SinkError,
    TerminalSetupError,
)
from .models import DeviceSpec, Failure, Output, Result, TerminalSettings
from .session import DeviceSession, SessionOptions
from .states import SessionState, Stage

__all__ = [
    "AuthError",
    "ChannelError",
    "CommandError",
    "ConfigurationError",
    "ConnectError",
    "DeviceSession",
    "DeviceSpec",
    "Dispatcher",
    "Failure",
    "FleetCmdError",
    "InventoryError",
    "Output",
    "Result",
    "SessionCancelled",
    "SessionError",
    "SessionOptions",
    "SessionState",
    "SinkError",
    "Stage",
    "TerminalSettings",
    "TerminalSetupError",
    "Transport",
]
