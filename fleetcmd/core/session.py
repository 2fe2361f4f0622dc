"""Per-device session protocol.

A ``DeviceSession`` drives one device through::

    connecting -> authenticating -> channel_open -> terminal_setup
               -> executing -> succeeded | failed

and produces exactly one ``Result``.  Every stage failure is mapped to the
matching ``SessionError`` subclass and then to a ``Failure`` outcome; the
transport is closed on every exit path.

Usage::

    session = DeviceSession(spec, factory.factory_for("ssh"))
    result = session.run()
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .base_transport import Transport
from .exceptions import (
    AuthError,
    ChannelError,
    CommandError,
    ConnectError,
    SessionCancelled,
    SessionError,
    TerminalSetupError,
)
from .models import DEFAULT_PROMPT_MARKER, DeviceSpec, Result, TerminalSettings
from .states import SessionState

logger = logging.getLogger(__name__)

TransportFactory = Callable[[DeviceSpec], Transport]


@dataclass(frozen=True)
class SessionOptions:
    """Protocol parameters shared by every session of a run.

    Attributes:
        prompt_marker: Byte sequence terminating each response.
        line_ending: Bytes appended to every command.
        terminal: Pseudo-terminal parameters.
        sync_prompt: Read up to the first prompt after the shell starts, so
            the login banner is not mistaken for command output.
        encoding: Encoding used to turn commands into bytes.

    """

    prompt_marker: bytes = DEFAULT_PROMPT_MARKER
    line_ending: bytes = b"\n"
    terminal: TerminalSettings = field(default_factory=TerminalSettings)
    sync_prompt: bool = True
    encoding: str = "utf-8"


class DeviceSession:
    """Run the full session protocol for one device.

    Instances are single-use and never shared between workers.

    Args:
        spec: The target device.
        transport_factory: Callable building a fresh ``Transport`` for
            ``spec``; called once, inside the connecting stage.
        options: Protocol parameters.
        cancel_event: Shared cancellation signal.  When set, the next
            blocking step fails instead of running.

    """

    def __init__(
        self,
        spec: DeviceSpec,
        transport_factory: TransportFactory,
        options: SessionOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the session in the ``pending`` state."""
        self._spec = spec
        self._transport_factory = transport_factory
        self._options = options or SessionOptions()
        self._cancel_event = cancel_event
        self._transport: Transport | None = None
        self._state = SessionState.PENDING
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def state(self) -> SessionState:
        """Return the current protocol state."""
        return self._state

    @property
    def address(self) -> str:
        """Return the device address."""
        return self._spec.address

    # -- Public API ---------------------------------------------------------

    def run(self) -> Result:
        """Drive the session to a terminal state and return its result.

        Never raises for device-side problems: every ``Exception`` raised by
        the transport becomes a ``Failure`` result.

        Raises:
            RuntimeError: If the session was already run.

        """
        if self._state is not SessionState.PENDING:
            raise RuntimeError(f"Session for {self.address} has already run")

        started = time.monotonic()
        try:
            output = self._execute_protocol()
        except SessionError as exc:
            self._state = SessionState.FAILED
            self._logger.warning(
                "%s on %s: %s", exc.stage.description, self.address, exc.reason
            )
            return Result.failed(
                self.address,
                exc.stage,
                exc.reason,
                duration_seconds=time.monotonic() - started,
            )
        finally:
            self._close()

        self._state = SessionState.SUCCEEDED
        self._logger.info(
            "Commands executed successfully on %s (%d bytes)", self.address, len(output)
        )
        return Result.success(self.address, output, duration_seconds=time.monotonic() - started)

    # -- Protocol stages ----------------------------------------------------

    def _execute_protocol(self) -> bytes:
        """Run every stage in order and return the accumulated output."""
        self._step(SessionState.CONNECTING, ConnectError, self._connect)
        transport = self._require_transport()
        self._step(SessionState.AUTHENTICATING, AuthError, transport.authenticate)
        self._step(SessionState.CHANNEL_OPEN, ChannelError, transport.open_channel)
        self._step(SessionState.TERMINAL_SETUP, TerminalSetupError, self._setup_terminal)

        self._enter(SessionState.EXECUTING)
        output = bytearray()
        for index, command in enumerate(self._spec.commands):
            output.extend(
                self._guarded(
                    CommandError,
                    self._run_command,
                    command,
                    details={"command": command, "index": index},
                )
            )
        return bytes(output)

    def _connect(self) -> None:
        """Build the transport and open the connection."""
        self._transport = self._transport_factory(self._spec)
        self._transport.connect()
        self._logger.info("Connected to %s", self.address)

    def _setup_terminal(self) -> None:
        """Allocate the terminal and optionally drain the login banner."""
        transport = self._require_transport()
        transport.setup_terminal(self._options.terminal)
        if self._options.sync_prompt:
            transport.request_prompt()
            banner = transport.read_until(
                self._options.prompt_marker,
                self._spec.read_timeout,
                self._cancel_event,
            )
            self._logger.debug("Drained %d banner bytes from %s", len(banner), self.address)

    def _run_command(self, command: str) -> bytes:
        """Send one command and read its response up to the prompt."""
        transport = self._require_transport()
        self._logger.debug("Sending %r to %s", command, self.address)
        transport.send(command.encode(self._options.encoding) + self._options.line_ending)
        response = transport.read_until(
            self._options.prompt_marker,
            self._spec.read_timeout,
            self._cancel_event,
        )
        self._logger.debug("Read %d bytes for %r from %s", len(response), command, self.address)
        return response

    # -- Internal helpers ---------------------------------------------------

    def _step(
        self,
        state: SessionState,
        error_cls: type[SessionError],
        action: Callable[[], Any],
    ) -> Any:
        """Enter ``state`` and run ``action`` under its error mapping."""
        self._enter(state)
        return self._guarded(error_cls, action)

    def _guarded(
        self,
        error_cls: type[SessionError],
        action: Callable[..., Any],
        *args: Any,
        details: dict[str, object] | None = None,
    ) -> Any:
        """Run ``action``, mapping any failure to ``error_cls``.

        Stage errors raised by the transport itself propagate unchanged.
        """
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise error_cls("Session cancelled", device=self.address, details=details)
        try:
            return action(*args)
        except SessionError:
            raise
        except SessionCancelled as exc:
            raise error_cls("Session cancelled", device=self.address, details=details) from exc
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            raise error_cls(reason, device=self.address, details=details) from exc

    def _enter(self, state: SessionState) -> None:
        self._logger.debug("%s: %s -> %s", self.address, self._state, state)
        self._state = state

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise RuntimeError("Transport not created")
        return self._transport

    def _close(self) -> None:
        """Close the transport.  Close errors never change the outcome."""
        if self._transport is None:
            return
        try:
            self._transport.close()
        except Exception:
            self._logger.debug("Error closing transport for %s", self.address, exc_info=True)
        finally:
            self._transport = None
