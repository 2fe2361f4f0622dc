"""Transport backends implementing the session's capability interface.

Each backend subclasses ``Transport`` and maps the connect / authenticate /
channel / terminal steps onto a concrete SSH library.

The ``TransportFactory`` selects a backend by name from the run
configuration.
"""

from .netmiko_transport import NetmikoTransport
from .paramiko_transport import ParamikoTransport
from .transport_factory import TransportFactory

__all__ = [
    "NetmikoTransport",
    "ParamikoTransport",
    "TransportFactory",
]
