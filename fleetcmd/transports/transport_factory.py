"""Factory for creating transport backends by name.

Maintains a registry of backend names to ``Transport`` subclasses so the
run configuration can select a backend with a plain string, and so new
backends can be registered without touching the session or dispatcher.

Usage::

    factory = TransportFactory()
    build = factory.factory_for("ssh", connect_timeout=5)
    dispatcher = Dispatcher(build, concurrency=8)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..core.base_transport import Transport
from ..core.exceptions import ConfigurationError
from ..core.models import DeviceSpec
from .netmiko_transport import NetmikoTransport
from .paramiko_transport import ParamikoTransport

logger = logging.getLogger(__name__)

DEFAULT_TRANSPORT = "ssh"

TRANSPORT_MAP: dict[str, type[Transport]] = {
    "ssh": ParamikoTransport,
    "paramiko": ParamikoTransport,
    "netmiko": NetmikoTransport,
}


class TransportFactory:
    """Registry-backed factory for ``Transport`` instances.

    Args:
        custom_transports: Optional mapping of additional backend names to
            transport classes.

    """

    def __init__(
        self,
        custom_transports: dict[str, type[Transport]] | None = None,
    ) -> None:
        """Initialize the factory with an optional set of custom backends."""
        self._registry: dict[str, type[Transport]] = dict(TRANSPORT_MAP)
        if custom_transports:
            for name, transport_cls in custom_transports.items():
                self._registry[name.lower()] = transport_cls
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def register(self, name: str, transport_cls: type[Transport]) -> None:
        """Register a new transport backend.

        Args:
            name: Backend name (case-insensitive).
            transport_cls: The transport class to associate.

        """
        self._registry[name.lower()] = transport_cls
        self._logger.info("Registered transport %s as '%s'", transport_cls.__name__, name)

    def get(self, name: str) -> type[Transport]:
        """Return the transport class registered under ``name``.

        Raises:
            ConfigurationError: If the name is not registered.

        """
        transport_cls = self._registry.get(name.lower())
        if transport_cls is None:
            supported = ", ".join(self.supported_transports)
            raise ConfigurationError(
                f"Unsupported transport '{name}'. Supported: {supported}",
                details={"transport": name},
            )
        return transport_cls

    def create(self, name: str, spec: DeviceSpec, **options: Any) -> Transport:
        """Create an unconnected transport for one device.

        Args:
            name: Backend name (case-insensitive).
            spec: The target device.
            **options: Backend keyword options (``connect_timeout``, ...).

        Returns:
            A fresh ``Transport`` instance.

        """
        transport_cls = self.get(name)
        self._logger.debug("Creating %s for %s", transport_cls.__name__, spec.address)
        return transport_cls(spec, **options)

    def factory_for(self, name: str, **options: Any) -> Callable[[DeviceSpec], Transport]:
        """Return a per-device builder bound to one backend and its options.

        The backend name is resolved eagerly so an unknown name fails before
        any device is dispatched.
        """
        transport_cls = self.get(name)

        def build(spec: DeviceSpec) -> Transport:
            return transport_cls(spec, **options)

        return build

    @property
    def supported_transports(self) -> list[str]:
        """Return sorted list of registered backend names."""
        return sorted(self._registry.keys())
