"""Immutable data models shared by the session protocol and the dispatcher.

``DeviceSpec`` describes one target device.  ``Result`` carries the single
outcome produced for it: either an ``Output`` holding the concatenated
command responses, or a ``Failure`` naming the protocol stage that failed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ConfigurationError
from .states import Stage

DEFAULT_PORT = 22
DEFAULT_READ_TIMEOUT = 30.0
DEFAULT_PROMPT_MARKER = b"> "


def normalize_read_timeout(value: Any) -> float:
    """Coerce a read timeout to positive seconds, or fall back to the default.

    ``None``, blank strings, non-numeric values, NaN/infinity, and values at
    or below zero all yield ``DEFAULT_READ_TIMEOUT``.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_READ_TIMEOUT
    try:
        seconds = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return DEFAULT_READ_TIMEOUT
    if not math.isfinite(seconds) or seconds <= 0:
        return DEFAULT_READ_TIMEOUT
    return seconds


def split_address(address: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """Split ``host``, ``host:port`` or ``[v6]:port`` into host and port.

    Raises:
        ConfigurationError: If the host is empty or the port is not a valid
            TCP port number.

    """
    address = address.strip()
    host, port_str = address, ""
    if address.startswith("["):
        closing = address.find("]")
        if closing == -1:
            raise ConfigurationError(f"Malformed IPv6 address '{address}'")
        host = address[1:closing]
        rest = address[closing + 1 :]
        if rest.startswith(":"):
            port_str = rest[1:]
    elif address.count(":") == 1:
        host, port_str = address.split(":", 1)

    if not host:
        raise ConfigurationError(f"Missing host in address '{address}'")
    if not port_str:
        return host, default_port
    if not port_str.isdigit() or not 0 < int(port_str) < 65536:
        raise ConfigurationError(f"Invalid port in address '{address}'")
    return host, int(port_str)


@dataclass(frozen=True)
class DeviceSpec:
    """Immutable descriptor of one target device.

    Attributes:
        address: ``host`` or ``host:port`` of the device's SSH service.
        username: Login username.
        password: Login password.
        commands: Ordered, non-empty sequence of commands to run, sent
            verbatim.  A blank entry sends only the line ending.
        device_type: Informational platform tag (e.g. ``cisco_ios``).
        privileged_secret: Optional elevation credential.
        read_timeout: Seconds allowed for each response read.

    Raises:
        ConfigurationError: If ``commands`` is empty or ``address`` is
            malformed.

    """

    address: str
    username: str
    password: str = field(repr=False)
    commands: tuple[str, ...]
    device_type: str = ""
    privileged_secret: str | None = field(default=None, repr=False)
    read_timeout: float = DEFAULT_READ_TIMEOUT

    def __post_init__(self) -> None:
        """Validate commands and address, normalize the read timeout."""
        commands = (self.commands,) if isinstance(self.commands, str) else self.commands
        # the session appends its own line ending
        cleaned = tuple(cmd.rstrip("\r\n") for cmd in commands)
        if not cleaned:
            raise ConfigurationError(
                "Device has no commands to run",
                device=self.address,
            )
        split_address(self.address)
        object.__setattr__(self, "commands", cleaned)
        object.__setattr__(self, "read_timeout", normalize_read_timeout(self.read_timeout))

    @property
    def host(self) -> str:
        """Return the host part of ``address``."""
        return split_address(self.address)[0]

    @property
    def port(self) -> int:
        """Return the port part of ``address`` (22 when omitted)."""
        return split_address(self.address)[1]


@dataclass(frozen=True)
class TerminalSettings:
    """Pseudo-terminal parameters requested for the interactive channel."""

    term: str = "xterm"
    width: int = 80
    height: int = 24


@dataclass(frozen=True)
class Output:
    """Successful outcome: every command response, in command order."""

    data: bytes


@dataclass(frozen=True)
class Failure:
    """Failed outcome: the stage that failed and a short reason."""

    stage: Stage
    reason: str

    @property
    def description(self) -> str:
        """Return the human-readable label of the failed stage."""
        return self.stage.description


@dataclass(frozen=True)
class Result:
    """The single outcome produced for one device.

    Exactly one of ``output`` / ``failure`` is set.  Build instances with
    :meth:`success` or :meth:`failed`.

    Attributes:
        device: Address of the originating ``DeviceSpec``.
        outcome: ``Output`` or ``Failure``.
        duration_seconds: Wall-clock time spent in the session.

    """

    device: str
    outcome: Output | Failure
    duration_seconds: float = 0.0

    def __post_init__(self) -> None:
        """Reject anything but an ``Output`` or a ``Failure`` outcome."""
        if not isinstance(self.outcome, Output | Failure):
            raise TypeError(
                f"Result outcome must be Output or Failure, got {type(self.outcome).__name__}"
            )

    @classmethod
    def success(cls, device: str, data: bytes, duration_seconds: float = 0.0) -> Result:
        """Build a successful result."""
        return cls(device=device, outcome=Output(bytes(data)), duration_seconds=duration_seconds)

    @classmethod
    def failed(
        cls,
        device: str,
        stage: Stage,
        reason: str,
        duration_seconds: float = 0.0,
    ) -> Result:
        """Build a failed result."""
        return cls(
            device=device,
            outcome=Failure(stage=Stage(stage), reason=reason),
            duration_seconds=duration_seconds,
        )

    @property
    def ok(self) -> bool:
        """Return ``True`` if the device completed every command."""
        return isinstance(self.outcome, Output)

    @property
    def output(self) -> bytes | None:
        """Return the captured bytes, or ``None`` for a failure."""
        return self.outcome.data if isinstance(self.outcome, Output) else None

    @property
    def failure(self) -> Failure | None:
        """Return the failure record, or ``None`` for a success."""
        return self.outcome if isinstance(self.outcome, Failure) else None
