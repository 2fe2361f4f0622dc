"""Shared pytest fixtures for the fleet command runner.

Provides reusable device specs and an in-memory scripted transport that
behaves like a network device's interactive shell: it prints a banner and
prompt, echoes each command, answers with a canned response and a fresh
prompt, and can be told to fail at any protocol stage.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from fleetcmd.core.base_transport import Transport
from fleetcmd.core.models import DeviceSpec, TerminalSettings

PROMPT = b"router> "
BANNER = b"Welcome to router\r\n" + PROMPT


# ---------------------------------------------------------------------------
# Scripted transport
# ---------------------------------------------------------------------------


@dataclass
class TransportTracker:
    """Records activity across every scripted transport of a test."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    active: int = 0
    max_active: int = 0
    connected: list[str] = field(default_factory=list)
    closed: list[str] = field(default_factory=list)
    sent: dict[str, list[bytes]] = field(default_factory=dict)

    def opened(self, address: str) -> None:
        with self.lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.connected.append(address)

    def released(self, address: str) -> None:
        with self.lock:
            self.active -= 1
            self.closed.append(address)


def default_response(command: str) -> bytes:
    """Canned device output for ``command``."""
    return f"{command}\r\noutput of {command}\r\n".encode() + PROMPT


class ScriptedTransport(Transport):
    """In-memory transport emulating a device shell.

    Args:
        spec: The target device.
        tracker: Shared activity recorder.
        fail_at: Stage method that raises (``connect``, ``authenticate``,
            ``open_channel``, ``setup_terminal``, ``send``).
        error: Exception raised by ``fail_at``.
        silent_commands: Commands that never get a response.
        closing_commands: Commands after which the device hangs up.
        responses: Overrides of the canned response per command.
        chunk_size: Bytes returned per ``_recv`` call.
        delay: Seconds spent in ``connect``.

    """

    def __init__(
        self,
        spec: DeviceSpec,
        *,
        tracker: TransportTracker,
        fail_at: str | None = None,
        error: Exception | None = None,
        silent_commands: frozenset[str] = frozenset(),
        closing_commands: frozenset[str] = frozenset(),
        responses: dict[str, bytes] | None = None,
        banner: bytes = BANNER,
        chunk_size: int = 5,
        delay: float = 0.0,
    ) -> None:
        super().__init__(spec, poll_interval=0.01)
        self._tracker = tracker
        self._fail_at = fail_at
        self._error = error or OSError(f"{fail_at} failed")
        self._silent = silent_commands
        self._closing = closing_commands
        self._responses = responses or {}
        self._banner = banner
        self._chunk_size = chunk_size
        self._delay = delay
        self._inbox = bytearray()
        self._eof = False
        self._open = False
        self.close_calls = 0

    def _maybe_fail(self, step: str) -> None:
        if self._fail_at == step:
            raise self._error

    def connect(self) -> None:
        if self._delay:
            time.sleep(self._delay)
        self._maybe_fail("connect")
        self._open = True
        self._tracker.opened(self.address)

    def authenticate(self) -> None:
        self._maybe_fail("authenticate")

    def open_channel(self) -> None:
        self._maybe_fail("open_channel")

    def setup_terminal(self, terminal: TerminalSettings) -> None:
        self._maybe_fail("setup_terminal")
        self._inbox.extend(self._banner)

    def send(self, data: bytes) -> None:
        self._maybe_fail("send")
        self._tracker.sent.setdefault(self.address, []).append(data)
        command = data.decode().strip()
        if command in self._closing:
            self._eof = True
            return
        if command in self._silent:
            return
        self._inbox.extend(self._responses.get(command, default_response(command)))

    def _recv(self, timeout: float) -> bytes:
        if self._inbox:
            chunk = bytes(self._inbox[: self._chunk_size])
            del self._inbox[: self._chunk_size]
            return chunk
        if self._eof:
            raise EOFError("Channel closed by remote side")
        time.sleep(timeout)
        return b""

    def close(self) -> None:
        self.close_calls += 1
        if self._open:
            self._open = False
            self._tracker.released(self.address)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def prompt() -> bytes:
    """Prompt printed by the scripted device."""
    return PROMPT


@pytest.fixture
def responder() -> Callable[[str], bytes]:
    """Canned response function of the scripted device."""
    return default_response


@pytest.fixture
def tracker() -> TransportTracker:
    """Fresh activity tracker."""
    return TransportTracker()


@pytest.fixture
def make_factory(
    tracker: TransportTracker,
) -> Callable[..., Callable[[DeviceSpec], ScriptedTransport]]:
    """Build a transport factory; per-address overrides go in ``per_device``."""
    created: list[ScriptedTransport] = []

    def _make(
        per_device: dict[str, dict[str, Any]] | None = None,
        **defaults: Any,
    ) -> Callable[[DeviceSpec], ScriptedTransport]:
        per_device = per_device or {}

        def build(spec: DeviceSpec) -> ScriptedTransport:
            options = {**defaults, **per_device.get(spec.address, {})}
            transport = ScriptedTransport(spec, tracker=tracker, **options)
            created.append(transport)
            return transport

        build.created = created  # type: ignore[attr-defined]
        return build

    return _make


@pytest.fixture
def router_spec() -> DeviceSpec:
    """DeviceSpec for a router with two commands."""
    return DeviceSpec(
        address="10.0.0.1:22",
        username="admin",
        password="admin123",
        commands=("show version", "show ip interface brief"),
        device_type="cisco_ios",
        read_timeout=2,
    )


@pytest.fixture
def fleet_specs() -> list[DeviceSpec]:
    """Twelve devices with two commands each."""
    return [
        DeviceSpec(
            address=f"10.0.1.{i}",
            username="admin",
            password="admin123",
            commands=("show version", f"show interface ge-0/0/{i}"),
            read_timeout=2,
        )
        for i in range(1, 13)
    ]


# ---------------------------------------------------------------------------
# Pytest configuration
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow-running")
