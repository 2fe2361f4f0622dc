"""Run configuration.

``RunConfig`` holds every setting of a run.  Values are layered, later
layers winning::

    defaults -> YAML config file -> FLEETCMD_* environment -> CLI flags

Usage::

    config = RunConfig.from_yaml(Path("fleetcmd.yml")).with_env()
    config = config.replace(concurrency=16)
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from .core.base_transport import DEFAULT_CONNECT_TIMEOUT
from .core.dispatcher import DEFAULT_CONCURRENCY
from .core.exceptions import ConfigurationError
from .core.models import TerminalSettings
from .core.session import SessionOptions
from .transports.transport_factory import DEFAULT_TRANSPORT

logger = logging.getLogger(__name__)

ENV_PREFIX = "FLEETCMD_"

# environment variable suffix -> field name
ENV_FIELDS: dict[str, str] = {
    "THREADS": "concurrency",
    "OUTPUT": "output_dir",
    "FAILED": "failed_log",
    "TRANSPORT": "transport",
    "PROMPT": "prompt_marker",
    "CONNECT_TIMEOUT": "connect_timeout",
    "KEY_FILE": "key_filename",
}

PATH_FIELDS = frozenset({"device_list", "output_dir", "failed_log", "report_json", "report_html"})


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one run.

    Attributes:
        device_list: CSV or YAML device list.
        concurrency: Maximum concurrent sessions.
        output_dir: Directory for per-device output files.
        failed_log: File listing failed devices.
        dated_output: Append ``YYYYMMDD`` to ``output_dir``.
        transport: Transport backend name.
        prompt_marker: Text terminating each command response.
        connect_timeout: Connection establishment timeout in seconds.
        sync_prompt: Drain the login banner before the first command.
        key_filename: Private key for the paramiko backend.
        command_separator: Separator between commands in CSV rows.
        terminal_width: PTY width in columns.
        terminal_height: PTY height in rows.
        report_json: Optional JSON report path.
        report_html: Optional HTML report path.

    """

    device_list: Path | None = None
    concurrency: int = DEFAULT_CONCURRENCY
    output_dir: Path = Path("result")
    failed_log: Path = Path("failed_devices.txt")
    dated_output: bool = False
    transport: str = DEFAULT_TRANSPORT
    prompt_marker: str = "> "
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    sync_prompt: bool = True
    key_filename: str | None = None
    command_separator: str = ";"
    terminal_width: int = 80
    terminal_height: int = 24
    report_json: Path | None = None
    report_html: Path | None = None

    def __post_init__(self) -> None:
        """Validate the settings."""
        if self.concurrency < 1:
            raise ConfigurationError(
                f"Concurrency limit must be at least 1, got {self.concurrency}",
            )
        if not self.prompt_marker:
            raise ConfigurationError("Prompt marker must not be empty")
        if self.connect_timeout <= 0:
            raise ConfigurationError(
                f"Connect timeout must be positive, got {self.connect_timeout}",
            )
        if not self.command_separator:
            raise ConfigurationError("Command separator must not be empty")

    # -- Construction -------------------------------------------------------

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RunConfig:
        """Build a config from a flat mapping, ignoring ``None`` values.

        Raises:
            ConfigurationError: On unknown keys or invalid values.

        """
        return cls().replace(**{k: v for k, v in data.items() if v is not None})

    @classmethod
    def from_yaml(cls, path: Path) -> RunConfig:
        """Load a config from a YAML file.

        Raises:
            ConfigurationError: If the file is missing or malformed.

        """
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as fh:
                raw: Any = yaml.safe_load(fh) or {}
        except OSError as exc:
            raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        logger.debug("Loaded config from %s", path)
        return cls.from_mapping(raw)

    def with_env(self, environ: Mapping[str, str] | None = None) -> RunConfig:
        """Return a copy with ``FLEETCMD_*`` environment overrides applied."""
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for suffix, name in ENV_FIELDS.items():
            value = environ.get(ENV_PREFIX + suffix)
            if value:
                overrides[name] = value
        return self.replace(**overrides) if overrides else self

    def replace(self, **changes: Any) -> RunConfig:
        """Return a copy with ``changes`` applied and coerced.

        Raises:
            ConfigurationError: On unknown keys or values of the wrong type.

        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                details={"keys": unknown},
            )
        try:
            coerced = {name: self._coerce(name, value) for name, value in changes.items()}
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration value: {exc}") from exc
        return dataclasses.replace(self, **coerced)

    # -- Derived settings ---------------------------------------------------

    @property
    def effective_output_dir(self) -> Path:
        """Return the output directory, dated when ``dated_output`` is set."""
        if not self.dated_output:
            return self.output_dir
        return self.output_dir.with_name(f"{self.output_dir.name}{date.today():%Y%m%d}")

    def session_options(self) -> SessionOptions:
        """Return the protocol parameters for every session of the run."""
        return SessionOptions(
            prompt_marker=self.prompt_marker.encode("utf-8"),
            terminal=TerminalSettings(width=self.terminal_width, height=self.terminal_height),
            sync_prompt=self.sync_prompt,
        )

    def transport_options(self) -> dict[str, Any]:
        """Return keyword options for the selected transport backend."""
        options: dict[str, Any] = {"connect_timeout": self.connect_timeout}
        if self.key_filename and self.transport.lower() in ("ssh", "paramiko"):
            options["key_filename"] = self.key_filename
        return options

    # -- Internal helpers ---------------------------------------------------

    @staticmethod
    def _coerce(name: str, value: Any) -> Any:
        if value is None:
            return None
        if name in PATH_FIELDS:
            return Path(value)
        if name in ("concurrency", "terminal_width", "terminal_height"):
            return int(value)
        if name == "connect_timeout":
            return float(value)
        if name in ("dated_output", "sync_prompt"):
            return _to_bool(value)
        return str(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")
