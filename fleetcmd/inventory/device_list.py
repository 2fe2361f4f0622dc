"""Device list loading from CSV rows or a YAML hosts file.

CSV rows carry, in order::

    address, username, password, deviceType, privilegedSecret, commands[, readTimeout]

``commands`` holds every command in one field, separated by ``;``.  A
missing or invalid ``readTimeout`` falls back to 30 seconds.  Blank lines
and ``#`` comments are skipped, as is a leading header row.

YAML files map an inventory name to host parameters::

    core1:
      address: 10.0.0.1:22
      username: admin
      password: secret
      device_type: cisco_ios
      commands:
        - show version
        - show ip interface brief

Usage::

    loader = DeviceListLoader(Path("devices.csv"))
    count = loader.validate()
    for spec in loader.iter_specs():
        ...
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from ..core.exceptions import ConfigurationError, InventoryError
from ..core.models import DeviceSpec

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_SEPARATOR = ";"
HEADER_FIRST_CELLS = frozenset({"address", "ip", "host", "hostname"})
MIN_CSV_FIELDS = 6
YAML_SUFFIXES = frozenset({".yml", ".yaml"})


class DeviceListLoader:
    """Stream ``DeviceSpec`` objects from a device list file.

    CSV files are read row by row, so memory use does not grow with the
    number of devices.  YAML files are parsed as a whole.

    Args:
        path: Path to the device list.
        command_separator: Separator between commands in the CSV field.
        delimiter: CSV field delimiter.

    """

    def __init__(
        self,
        path: Path,
        command_separator: str = DEFAULT_COMMAND_SEPARATOR,
        delimiter: str = ",",
    ) -> None:
        """Initialize the loader for one device list file."""
        self._path = Path(path)
        self._command_separator = command_separator
        self._delimiter = delimiter
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def path(self) -> Path:
        """Return the device list path."""
        return self._path

    @property
    def is_yaml(self) -> bool:
        """Return ``True`` if the file is a YAML hosts file."""
        return self._path.suffix.lower() in YAML_SUFFIXES

    def iter_specs(self) -> Iterator[DeviceSpec]:
        """Yield one ``DeviceSpec`` per device, in file order.

        Raises:
            InventoryError: If the file is missing or a row is invalid.

        """
        if not self._path.is_file():
            raise InventoryError(f"Device list not found: {self._path}")
        if self.is_yaml:
            yield from self._iter_yaml()
        else:
            yield from self._iter_csv()

    def validate(self) -> int:
        """Parse the whole file once without keeping the specs.

        Returns:
            Number of devices in the file.

        Raises:
            InventoryError: On the first invalid entry.

        """
        count = sum(1 for _ in self.iter_specs())
        self._logger.info("Device list %s holds %d devices", self._path, count)
        return count

    # -- CSV ----------------------------------------------------------------

    def _iter_csv(self) -> Iterator[DeviceSpec]:
        with self._path.open("r", encoding="utf-8-sig", newline="") as fh:
            reader = csv.reader(fh, delimiter=self._delimiter)
            first_row = True
            for row in reader:
                line = reader.line_num
                cells = [cell.strip() for cell in row]
                if not any(cells) or cells[0].startswith("#"):
                    continue
                if first_row:
                    first_row = False
                    if cells[0].lower() in HEADER_FIRST_CELLS:
                        self._logger.debug("Skipping header row in %s", self._path)
                        continue
                yield self._parse_row(cells, line)

    def _parse_row(self, cells: list[str], line: int) -> DeviceSpec:
        """Convert one CSV row into a ``DeviceSpec``."""
        if len(cells) < MIN_CSV_FIELDS:
            raise InventoryError(
                f"Expected at least {MIN_CSV_FIELDS} fields, got {len(cells)}",
                details={"file": str(self._path), "line": line},
            )
        address, username, password, device_type, secret, commands = cells[:MIN_CSV_FIELDS]
        read_timeout = cells[MIN_CSV_FIELDS] if len(cells) > MIN_CSV_FIELDS else None
        return self._build_spec(
            {
                "address": address,
                "username": username,
                "password": password,
                "device_type": device_type,
                "privileged_secret": secret or None,
                "commands": self._split_commands(commands),
                "read_timeout": read_timeout,
            },
            location=f"line {line}",
        )

    # -- YAML ---------------------------------------------------------------

    def _iter_yaml(self) -> Iterator[DeviceSpec]:
        with self._path.open("r", encoding="utf-8") as fh:
            try:
                raw: Any = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise InventoryError(
                    f"Invalid YAML in device list: {exc}",
                    details={"file": str(self._path)},
                ) from exc

        if not isinstance(raw, dict):
            raise InventoryError(
                "YAML device list must be a mapping of name to host",
                details={"file": str(self._path)},
            )

        for name, host in raw.items():
            if not isinstance(host, dict):
                self._logger.warning("Host %s is not a mapping, skipping", name)
                continue
            address = str(host.get("address") or host.get("hostname") or name)
            if "port" in host and ":" not in address:
                address = f"{address}:{host['port']}"
            commands = host.get("commands", [])
            if isinstance(commands, str):
                commands = self._split_commands(commands)
            yield self._build_spec(
                {
                    "address": address,
                    "username": str(host.get("username", "")),
                    "password": str(host.get("password", "")),
                    "device_type": str(host.get("device_type", host.get("platform", ""))),
                    "privileged_secret": host.get("secret"),
                    "commands": [str(cmd) for cmd in commands],
                    "read_timeout": host.get("read_timeout"),
                },
                location=f"host '{name}'",
            )

    # -- Shared -------------------------------------------------------------

    def _split_commands(self, field: str) -> list[str]:
        """Split a command field, dropping the empty pieces separators leave."""
        return [cmd for cmd in field.split(self._command_separator) if cmd]

    def _build_spec(self, fields: dict[str, Any], location: str) -> DeviceSpec:
        """Build a spec, reporting validation failures with their location."""
        try:
            return DeviceSpec(**fields)
        except ConfigurationError as exc:
            raise InventoryError(
                exc.message,
                device=exc.device,
                details={"file": str(self._path), "location": location},
            ) from exc
