"""Unit tests for the NetmikoTransport with ConnectHandler mocked out."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest
from netmiko.exceptions import NetmikoAuthenticationException, NetmikoTimeoutException

from fleetcmd.core.exceptions import AuthError, ChannelError, ConnectError
from fleetcmd.core.models import DeviceSpec, TerminalSettings
from fleetcmd.core.session import DeviceSession, SessionOptions
from fleetcmd.transports.netmiko_transport import NetmikoTransport, resolve_device_type


class EchoConnection:
    """Stand-in for a Netmiko connection that answers every write.

    Each command is echoed with one line of output and a fresh prompt; a bare
    line ending gets only the prompt.
    """

    RETURN = "\n"

    def __init__(self) -> None:
        self.written: list[str] = []
        self._pending: list[str] = []

    def write_channel(self, data: str) -> None:
        self.written.append(data)
        command = data.rstrip("\n")
        if command:
            self._pending.append(f"{command}\r\noutput of {command}\r\nrouter> ")
        else:
            self._pending.append("\r\nrouter> ")

    def read_channel(self) -> str:
        return self._pending.pop(0) if self._pending else ""

    def clear_buffer(self) -> None:
        self._pending.clear()

    def is_alive(self) -> bool:
        return True

    def check_enable_mode(self) -> bool:
        return True

    def disconnect(self) -> None:
        pass


@pytest.fixture
def connect_handler() -> Iterator[MagicMock]:
    """Patch the Netmiko ConnectHandler used by the transport."""
    with patch("fleetcmd.transports.netmiko_transport.ConnectHandler") as handler:
        conn = handler.return_value
        conn.RETURN = "\n"
        conn.is_alive.return_value = True
        conn.check_enable_mode.return_value = False
        yield handler


class TestResolveDeviceType:
    """Tests for the device type mapping."""

    @pytest.mark.parametrize(
        "device_type,expected",
        [
            ("ios", "cisco_ios"),
            ("IOS-XE", "cisco_ios"),
            ("huawei", "huawei"),
            ("hp_comware", "hp_comware"),
            ("juniper_junos", "juniper_junos"),
            ("", "generic"),
            ("  ", "generic"),
        ],
    )
    def test_resolve(self, device_type: str, expected: str) -> None:
        assert resolve_device_type(device_type) == expected


class TestNetmikoTransport:
    """Tests for the Netmiko-backed stages."""

    def test_connect_passes_device_parameters(
        self, router_spec: DeviceSpec, connect_handler: MagicMock
    ) -> None:
        NetmikoTransport(router_spec, connect_timeout=7.0).connect()
        connect_handler.assert_called_once_with(
            device_type="cisco_ios",
            host="10.0.0.1",
            port=22,
            username="admin",
            password="admin123",
            conn_timeout=7.0,
            read_timeout_override=2.0,
        )

    def test_secret_passed_when_present(self, connect_handler: MagicMock) -> None:
        spec = DeviceSpec("r1", "u", "p", commands=("show run",), privileged_secret="en4ble")
        NetmikoTransport(spec).connect()
        assert connect_handler.call_args.kwargs["secret"] == "en4ble"

    def test_timeout_is_connect_error(
        self, router_spec: DeviceSpec, connect_handler: MagicMock
    ) -> None:
        connect_handler.side_effect = NetmikoTimeoutException("timed out")
        with pytest.raises(ConnectError, match="Login timed out"):
            NetmikoTransport(router_spec).connect()

    def test_bad_credentials_is_auth_error(
        self, router_spec: DeviceSpec, connect_handler: MagicMock
    ) -> None:
        connect_handler.side_effect = NetmikoAuthenticationException("denied")
        with pytest.raises(AuthError, match="Invalid username or password"):
            NetmikoTransport(router_spec).connect()

    def test_authenticate_enters_enable_mode(self, connect_handler: MagicMock) -> None:
        spec = DeviceSpec("r1", "u", "p", commands=("show run",), privileged_secret="en4ble")
        transport = NetmikoTransport(spec)
        transport.connect()
        transport.authenticate()
        connect_handler.return_value.enable.assert_called_once()

    def test_authenticate_without_secret_is_noop(
        self, router_spec: DeviceSpec, connect_handler: MagicMock
    ) -> None:
        transport = NetmikoTransport(router_spec)
        transport.connect()
        transport.authenticate()
        connect_handler.return_value.enable.assert_not_called()

    def test_dead_session_is_channel_error(
        self, router_spec: DeviceSpec, connect_handler: MagicMock
    ) -> None:
        connect_handler.return_value.is_alive.return_value = False
        transport = NetmikoTransport(router_spec)
        transport.connect()
        with pytest.raises(ChannelError):
            transport.open_channel()

    def test_shell_round_trip(self, router_spec: DeviceSpec, connect_handler: MagicMock) -> None:
        conn = connect_handler.return_value
        conn.read_channel.side_effect = ["\r\nrouter> ", "show version\r\nIOS\r\nrouter> "]
        transport = NetmikoTransport(router_spec, poll_interval=0.01)
        transport.connect()
        transport.setup_terminal(TerminalSettings())
        conn.write_channel.assert_not_called()
        transport.request_prompt()
        conn.write_channel.assert_called_once_with("\n")
        assert transport.read_until(b"> ", timeout=1.0) == b"\r\nrouter> "

        transport.send(b"show version\n")
        conn.write_channel.assert_called_with("show version\n")
        assert transport.read_until(b"> ", timeout=1.0) == b"show version\r\nIOS\r\nrouter> "

    def test_close_disconnects_once(
        self, router_spec: DeviceSpec, connect_handler: MagicMock
    ) -> None:
        transport = NetmikoTransport(router_spec)
        transport.connect()
        transport.close()
        transport.close()
        connect_handler.return_value.disconnect.assert_called_once()

    def test_send_before_connect(self, router_spec: DeviceSpec) -> None:
        with pytest.raises(RuntimeError, match="not open"):
            NetmikoTransport(router_spec).send(b"show clock\n")


class TestNetmikoSession:
    """Tests for full sessions over the Netmiko transport."""

    @staticmethod
    def _run(spec: DeviceSpec, sync_prompt: bool) -> tuple[bytes | None, EchoConnection]:
        conn = EchoConnection()
        options = SessionOptions(prompt_marker=b"router> ", sync_prompt=sync_prompt)
        with patch("fleetcmd.transports.netmiko_transport.ConnectHandler", return_value=conn):
            result = DeviceSession(
                spec, lambda s: NetmikoTransport(s, poll_interval=0.01), options=options
            ).run()
        assert result.ok, result.failure
        return result.output, conn

    @pytest.mark.parametrize("sync_prompt", [True, False])
    def test_each_response_matches_its_command(
        self, router_spec: DeviceSpec, sync_prompt: bool
    ) -> None:
        output, _ = self._run(router_spec, sync_prompt)
        assert output == (
            b"show version\r\noutput of show version\r\nrouter> "
            b"show ip interface brief\r\noutput of show ip interface brief\r\nrouter> "
        )

    def test_no_sync_prompt_writes_only_commands(self, router_spec: DeviceSpec) -> None:
        _, conn = self._run(router_spec, sync_prompt=False)
        assert conn.written == ["show version\n", "show ip interface brief\n"]

    def test_sync_prompt_requests_one_prompt(self, router_spec: DeviceSpec) -> None:
        _, conn = self._run(router_spec, sync_prompt=True)
        assert conn.written == ["\n", "show version\n", "show ip interface brief\n"]
