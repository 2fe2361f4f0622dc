"""SSH transport built directly on paramiko.

Each stage of the session protocol maps to one paramiko step, so failures
are attributed to the right stage:

- connect: TCP connect + SSH handshake (``paramiko.Transport.start_client``)
- authenticate: private key (when configured) and/or password
- open_channel: ``Transport.open_session``
- setup_terminal: ``Channel.get_pty`` + ``Channel.invoke_shell``

Requires:
    - paramiko

Usage::

    transport = ParamikoTransport(spec, key_filename="~/.ssh/id_ed25519")
"""

from __future__ import annotations

import os
import socket
from typing import Any

import paramiko

from ..core.base_transport import DEFAULT_CONNECT_TIMEOUT, DEFAULT_POLL_INTERVAL, Transport
from ..core.exceptions import AuthError, ConnectError
from ..core.models import DeviceSpec, TerminalSettings

RECV_BUFFER_SIZE = 65535


class ParamikoTransport(Transport):
    """Interactive SSH shell over a raw paramiko ``Transport``.

    Args:
        spec: The target device.
        connect_timeout: TCP connect, handshake and channel-open timeout.
        poll_interval: Maximum single ``recv`` wait.
        key_filename: Optional private key, tried before the password.
        host_keys: Optional known host keys.  When given, a server whose
            key is unknown or different is rejected at the connect stage.

    """

    def __init__(
        self,
        spec: DeviceSpec,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        key_filename: str | None = None,
        host_keys: paramiko.HostKeys | None = None,
    ) -> None:
        """Initialize the paramiko transport for one device."""
        super().__init__(spec, connect_timeout=connect_timeout, poll_interval=poll_interval)
        self._key_filename = key_filename
        self._host_keys = host_keys
        self._sock: socket.socket | None = None
        self._transport: paramiko.Transport | None = None
        self._channel: paramiko.Channel | None = None

    # -- Connection lifecycle -----------------------------------------------

    def connect(self) -> None:
        """Open the TCP connection and complete the SSH handshake.

        Raises:
            ConnectError: If the server key is rejected.

        """
        spec = self._spec
        self._sock = socket.create_connection((spec.host, spec.port), timeout=self._connect_timeout)
        self._transport = paramiko.Transport(self._sock)
        self._transport.start_client(timeout=self._connect_timeout)
        self._verify_host_key()
        self._logger.debug(
            "SSH handshake complete with %s (%s)",
            self.address,
            self._transport.remote_version,
        )

    def authenticate(self) -> None:
        """Authenticate with the configured key and/or the password.

        Raises:
            AuthError: If the server did not accept any credential.

        """
        transport = self._require(self._transport)
        username = self._spec.username

        if self._key_filename:
            key = paramiko.PKey.from_path(os.path.expanduser(self._key_filename))
            try:
                transport.auth_publickey(username, key)
            except paramiko.AuthenticationException:
                self._logger.debug("Key rejected by %s, trying password", self.address)

        if not transport.is_authenticated() and self._spec.password:
            transport.auth_password(username, self._spec.password)

        if not transport.is_authenticated():
            raise AuthError("No credential accepted", device=self.address)

    def open_channel(self) -> None:
        """Open the session channel."""
        transport = self._require(self._transport)
        self._channel = transport.open_session(timeout=self._connect_timeout)

    def setup_terminal(self, terminal: TerminalSettings) -> None:
        """Request a PTY and start the interactive shell."""
        channel = self._require(self._channel)
        channel.get_pty(term=terminal.term, width=terminal.width, height=terminal.height)
        channel.invoke_shell()

    def send(self, data: bytes) -> None:
        """Write all of ``data`` to the shell."""
        self._require(self._channel).sendall(data)

    def _recv(self, timeout: float) -> bytes:
        """Read one chunk from the shell, ``b""`` on poll timeout."""
        channel = self._require(self._channel)
        channel.settimeout(timeout)
        try:
            data = channel.recv(RECV_BUFFER_SIZE)
        except TimeoutError:
            return b""
        if not data:
            raise EOFError("Channel closed by remote side")
        return bytes(data)

    def close(self) -> None:
        """Close channel, transport and socket.  Idempotent."""
        for name in ("_channel", "_transport", "_sock"):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                resource.close()
            except Exception:
                self._logger.debug("Error closing %s for %s", name, self.address, exc_info=True)
            finally:
                setattr(self, name, None)

    # -- Internal helpers ---------------------------------------------------

    def _verify_host_key(self) -> None:
        """Check the server key against ``host_keys`` when configured."""
        if self._host_keys is None:
            return
        transport = self._require(self._transport)
        key = transport.get_remote_server_key()
        spec = self._spec
        lookup = spec.host if spec.port == 22 else f"[{spec.host}]:{spec.port}"
        if not self._host_keys.check(lookup, key):
            raise ConnectError(
                "Server host key not recognised",
                device=self.address,
                details={"key_type": key.get_name(), "fingerprint": key.get_fingerprint().hex()},
            )

    def _require(self, resource: Any) -> Any:
        if resource is None:
            raise RuntimeError(f"Transport for {self.address} is not ready for this step")
        return resource
