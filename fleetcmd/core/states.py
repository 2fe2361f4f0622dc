"""Enumerations describing the per-device session protocol."""

from __future__ import annotations

from enum import StrEnum


class Stage(StrEnum):
    """Protocol stage at which a device session failed."""

    CONNECT = "connect"
    AUTH = "auth"
    CHANNEL = "channel"
    TERMINAL = "terminal"
    COMMAND = "command"

    @property
    def description(self) -> str:
        """Short human-readable label used in the failure log."""
        return _STAGE_DESCRIPTIONS[self]


_STAGE_DESCRIPTIONS: dict[Stage, str] = {
    Stage.CONNECT: "Error connecting",
    Stage.AUTH: "Authentication failed",
    Stage.CHANNEL: "Error creating session",
    Stage.TERMINAL: "Error setting up terminal",
    Stage.COMMAND: "Error executing command",
}


class SessionState(StrEnum):
    """States of the session protocol state machine."""

    PENDING = "pending"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CHANNEL_OPEN = "channel_open"
    TERMINAL_SETUP = "terminal_setup"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` for the two end states."""
        return self in (SessionState.SUCCEEDED, SessionState.FAILED)
