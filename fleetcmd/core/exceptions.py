"""Custom exception hierarchy for the fleet command runner.

All framework exceptions inherit from ``FleetCmdError`` so callers can use
granular catch clauses while still allowing a single top-level handler.

Exception tree::

    FleetCmdError
    ├── ConfigurationError
    ├── InventoryError
    ├── SinkError
    ├── SessionCancelled
    └── SessionError
        ├── ConnectError
        ├── AuthError
        ├── ChannelError
        ├── TerminalSetupError
        └── CommandError

``SessionError`` subclasses map one-to-one onto the stages of the
per-device session protocol.  They never escape a session: the session
converts them into a ``Failure`` result for that device.
"""

from __future__ import annotations

from typing import ClassVar

from .states import Stage


def one_line(text: str) -> str:
    """Collapse every run of whitespace, newlines included, to one space."""
    return " ".join(text.split())


class FleetCmdError(Exception):
    """Base exception for all fleet command runner errors.

    The rendered message is always a single line, so it can go straight
    into the failure log or a log record.

    Attributes:
        message: Error description as raised, possibly multi-line.
        device: Device address the error belongs to, if any.
        details: Extra context rendered as ``key=value`` pairs.

    """

    def __init__(
        self,
        message: str,
        device: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Store the context and render the one-line message."""
        self.message = message
        self.device = device
        self.details = dict(details) if details else {}
        super().__init__(self._render())

    @property
    def reason(self) -> str:
        """Return ``message`` collapsed to one line, without device context."""
        return one_line(self.message) or self.__class__.__name__

    def _render(self) -> str:
        prefix = f"[{self.device}] " if self.device else ""
        suffix = ""
        if self.details:
            pairs = ", ".join(f"{key}={value}" for key, value in self.details.items())
            suffix = f" ({pairs})"
        return one_line(f"{prefix}{self.reason}{suffix}")


class ConfigurationError(FleetCmdError):
    """Raised when run configuration or a device descriptor is invalid.

    Examples:
        - Concurrency limit below one
        - Device with an empty command list
        - Unknown transport backend name

    """


class InventoryError(FleetCmdError):
    """Raised when the device list cannot be read or parsed.

    Examples:
        - Missing device list file
        - Row with too few fields
        - Unsupported inventory file format

    """


class SinkError(FleetCmdError):
    """Raised when the result sink cannot be prepared.

    Examples:
        - Output directory cannot be created
        - Failure log is not writable

    """


class SessionCancelled(FleetCmdError):
    """Raised inside a session when the shared cancellation signal is set."""


class SessionError(FleetCmdError):
    """Base class for failures local to one device session.

    Each subclass binds the protocol ``stage`` it represents.
    """

    stage: ClassVar[Stage]


class ConnectError(SessionError):
    """Raised when the transport connection cannot be established.

    Examples:
        - Connection refused
        - TCP connect or SSH handshake timeout
        - Server host key rejected

    """

    stage = Stage.CONNECT


class AuthError(SessionError):
    """Raised when the device rejects the credentials.

    Examples:
        - Wrong username or password
        - Private key not accepted
        - Privileged-mode secret rejected

    """

    stage = Stage.AUTH


class ChannelError(SessionError):
    """Raised when the interactive channel cannot be opened."""

    stage = Stage.CHANNEL


class TerminalSetupError(SessionError):
    """Raised when PTY allocation, shell start, or the banner drain fails."""

    stage = Stage.TERMINAL


class CommandError(SessionError):
    """Raised when writing a command or reading its response fails.

    Examples:
        - Channel closed by the device mid-command
        - Prompt marker not seen within the read timeout
        - Session cancelled while a command was running

    """

    stage = Stage.COMMAND
