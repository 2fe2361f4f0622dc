"""SSH transport backed by a Netmiko connection handler.

Netmiko combines TCP connect, SSH handshake and login in one call, so the
connect step classifies netmiko's own exceptions: a timeout is a connect
failure, a rejected login an authentication failure.  When the device
carries a privileged secret, the authenticate step enters privileged mode.

Requires:
    - netmiko

Usage::

    spec = DeviceSpec(address="10.0.0.1", device_type="cisco_ios", ...)
    transport = NetmikoTransport(spec)
"""

from __future__ import annotations

import time
from typing import Any

from netmiko import ConnectHandler
from netmiko.exceptions import NetmikoAuthenticationException, NetmikoTimeoutException

from ..core.base_transport import DEFAULT_CONNECT_TIMEOUT, DEFAULT_POLL_INTERVAL, Transport
from ..core.exceptions import AuthError, ChannelError, ConnectError
from ..core.models import DeviceSpec, TerminalSettings

DEFAULT_NETMIKO_DEVICE_TYPE = "generic"

DEVICE_TYPE_MAP: dict[str, str] = {
    "ios": "cisco_ios",
    "iosxe": "cisco_ios",
    "iosxr": "cisco_xr",
    "nxos": "cisco_nxos",
    "asa": "cisco_asa",
    "eos": "arista_eos",
    "junos": "juniper_junos",
    "huawei": "huawei",
    "huaweitelnet": "huawei_telnet",
    "hpcomware": "hp_comware",
    "hpcomwaretelnet": "hp_comware_telnet",
    "paloaltopanorama": "paloalto_panos",
}


def resolve_device_type(device_type: str) -> str:
    """Map an inventory device type to a Netmiko ``device_type`` string.

    Unknown non-empty values pass through unchanged so any Netmiko platform
    name can be used directly; an empty value selects the generic driver.
    """
    key = device_type.strip().lower()
    if not key:
        return DEFAULT_NETMIKO_DEVICE_TYPE
    return DEVICE_TYPE_MAP.get(key.replace("_", "").replace("-", ""), key)


class NetmikoTransport(Transport):
    """Interactive shell over a Netmiko ``BaseConnection``.

    Args:
        spec: The target device.
        connect_timeout: Netmiko connection timeout.
        poll_interval: Sleep between empty channel reads.

    """

    def __init__(
        self,
        spec: DeviceSpec,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the Netmiko transport for one device."""
        super().__init__(spec, connect_timeout=connect_timeout, poll_interval=poll_interval)
        self._conn: Any = None

    # -- Connection lifecycle -----------------------------------------------

    def connect(self) -> None:
        """Open the Netmiko session (connect and login).

        Raises:
            ConnectError: If the device cannot be reached in time.
            AuthError: If the device rejects the credentials.

        """
        spec = self._spec
        params: dict[str, Any] = {
            "device_type": resolve_device_type(spec.device_type),
            "host": spec.host,
            "port": spec.port,
            "username": spec.username,
            "password": spec.password,
            "conn_timeout": self._connect_timeout,
            "read_timeout_override": spec.read_timeout,
        }
        if spec.privileged_secret:
            params["secret"] = spec.privileged_secret
        try:
            self._conn = ConnectHandler(**params)
        except NetmikoTimeoutException as exc:
            raise ConnectError("Login timed out", device=self.address) from exc
        except NetmikoAuthenticationException as exc:
            raise AuthError("Invalid username or password", device=self.address) from exc
        self._logger.debug("Netmiko session open to %s as %s", self.address, params["device_type"])

    def authenticate(self) -> None:
        """Enter privileged mode when the device carries a secret."""
        conn = self._require_conn()
        if self._spec.privileged_secret and not conn.check_enable_mode():
            conn.enable()
            self._logger.debug("Entered privileged mode on %s", self.address)

    def open_channel(self) -> None:
        """Verify the Netmiko session channel is usable."""
        if not self._require_conn().is_alive():
            raise ChannelError("Netmiko session is not alive", device=self.address)

    def setup_terminal(self, terminal: TerminalSettings) -> None:
        """Discard leftovers; Netmiko already prepared the terminal."""
        self._require_conn().clear_buffer()

    def request_prompt(self) -> None:
        """Send a bare line ending; Netmiko consumed the login prompt."""
        conn = self._require_conn()
        conn.write_channel(conn.RETURN)

    def send(self, data: bytes) -> None:
        """Write ``data`` to the Netmiko channel."""
        self._require_conn().write_channel(data.decode("utf-8", errors="replace"))

    def _recv(self, timeout: float) -> bytes:
        """Read what the channel has buffered, or wait briefly."""
        data = self._require_conn().read_channel()
        if data:
            return data.encode("utf-8")
        time.sleep(timeout)
        return b""

    def close(self) -> None:
        """Disconnect the Netmiko session.  Idempotent."""
        if self._conn is None:
            return
        try:
            self._conn.disconnect()
        except Exception:
            self._logger.debug("Error closing Netmiko session", exc_info=True)
        finally:
            self._conn = None

    def _require_conn(self) -> Any:
        if self._conn is None:
            raise RuntimeError(f"Netmiko session to {self.address} is not open")
        return self._conn
