"""Abstract transport capability driven by the per-device session.

A transport knows how to connect to one device, authenticate, open an
interactive channel, allocate a terminal on it, and exchange raw bytes.
The session protocol only talks to this interface, so alternative
backends (key-based auth, another remote-shell library) plug in without
touching the session state machine or the dispatcher.

Usage::

    with ParamikoTransport(spec) as transport:
        transport.connect()
        transport.authenticate()
        transport.open_channel()
        transport.setup_terminal(TerminalSettings())
        transport.send(b"show version\\n")
        output = transport.read_until(b"> ", timeout=spec.read_timeout)
"""

from __future__ import annotations

import abc
import logging
import threading
import time

from .exceptions import SessionCancelled
from .models import DeviceSpec, TerminalSettings

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.1


class Transport(abc.ABC):
    """Abstract base class for remote interactive shell backends.

    Subclasses **must** implement every ``@abstractmethod``.  The concrete
    template method :meth:`read_until` builds the read-until-marker loop on
    top of the backend's single-chunk :meth:`_recv`.

    Args:
        spec: The device this transport talks to.
        connect_timeout: Bound for connection establishment and handshake.
        poll_interval: Upper bound of a single ``_recv`` wait, which is also
            how often cancellation is checked during a read.

    """

    def __init__(
        self,
        spec: DeviceSpec,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the transport for one device."""
        self._spec = spec
        self._connect_timeout = connect_timeout
        self._poll_interval = poll_interval
        self._pending = b""
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    # -- Properties ---------------------------------------------------------

    @property
    def spec(self) -> DeviceSpec:
        """Return the device descriptor."""
        return self._spec

    @property
    def address(self) -> str:
        """Return the device address."""
        return self._spec.address

    # -- Context manager ----------------------------------------------------

    def __enter__(self) -> Transport:
        """Return the transport; connection steps stay explicit."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Ensure the transport is closed when leaving a ``with`` block."""
        try:
            self.close()
        except Exception:
            self._logger.exception("Error during close in __exit__")

    # -- Abstract methods (backend-specific) --------------------------------

    @abc.abstractmethod
    def connect(self) -> None:
        """Establish the transport connection to the device."""

    @abc.abstractmethod
    def authenticate(self) -> None:
        """Present the device credentials on the open connection."""

    @abc.abstractmethod
    def open_channel(self) -> None:
        """Open the interactive channel on the authenticated connection."""

    @abc.abstractmethod
    def setup_terminal(self, terminal: TerminalSettings) -> None:
        """Allocate a pseudo-terminal and start the remote shell."""

    @abc.abstractmethod
    def send(self, data: bytes) -> None:
        """Write all of ``data`` to the channel."""

    @abc.abstractmethod
    def _recv(self, timeout: float) -> bytes:
        """Read one chunk, waiting at most ``timeout`` seconds.

        Returns ``b""`` when nothing arrived in time.

        Raises:
            EOFError: If the remote side closed the channel.

        """

    @abc.abstractmethod
    def close(self) -> None:
        """Close the channel and the connection.

        Implementations must be idempotent: closing an already-closed (or
        never-opened) transport is a no-op.
        """

    # -- Hooks --------------------------------------------------------------

    def request_prompt(self) -> None:
        """Make the device print a prompt before the first command.

        Called only when the session drains up to the first prompt.  A
        freshly started shell prints its banner and prompt on its own, so
        the default does nothing.
        """

    # -- Template methods ---------------------------------------------------

    def read_until(
        self,
        marker: bytes,
        timeout: float,
        cancel_event: threading.Event | None = None,
    ) -> bytes:
        """Read from the channel until ``marker`` is seen.

        The returned bytes run up to and including the first occurrence of
        the marker.  Anything received after it is kept for the next read.

        Args:
            marker: Byte sequence that terminates the response.
            timeout: Seconds allowed for the whole read.
            cancel_event: Optional shared cancellation signal, checked
                between chunks.

        Returns:
            The response bytes, marker included.

        Raises:
            TimeoutError: If the marker is not seen within ``timeout``.
            SessionCancelled: If ``cancel_event`` is set during the read.
            EOFError: If the channel closes before the marker arrives.

        """
        if not marker:
            raise ValueError("Prompt marker must not be empty")

        deadline = time.monotonic() + timeout
        buffer = bytearray(self._pending)
        self._pending = b""
        search_from = 0

        while True:
            index = buffer.find(marker, search_from)
            if index != -1:
                end = index + len(marker)
                self._pending = bytes(buffer[end:])
                return bytes(buffer[:end])
            search_from = max(0, len(buffer) - len(marker) + 1)

            if cancel_event is not None and cancel_event.is_set():
                raise SessionCancelled("Read cancelled", device=self.address)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(
                    f"Prompt marker {marker!r} not seen within {timeout:g}s "
                    f"({len(buffer)} bytes received)"
                )
            buffer.extend(self._recv(min(remaining, self._poll_interval)))
