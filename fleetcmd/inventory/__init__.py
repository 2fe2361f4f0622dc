"""Device list loading (CSV rows and YAML hosts files)."""

from .device_list import DeviceListLoader

__all__ = ["DeviceListLoader"]
