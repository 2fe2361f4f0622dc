"""File-based result sink.

Successful devices get their output bytes written to
``<output_dir>/<address>.txt``; failed devices get one line appended to
the failure log::

    10.0.0.7:22: Error connecting ([Errno 111] Connection refused)

The sink is shared by the consumer side of a run only, but failure-log
appends are still serialised so it can be handed to several threads.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path

from ..core.exceptions import SinkError, one_line
from ..core.models import Result

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")
SAVE_FAILURE_DESCRIPTION = "Error saving output"


def output_filename(address: str) -> str:
    """Return the output file name for a device address."""
    return f"{UNSAFE_FILENAME_CHARS.sub('_', address)}.txt"


class FileResultSink:
    """Persist per-device output files and a failure log.

    Args:
        output_dir: Directory receiving one output file per device.
        failed_log: File receiving one line per failed device.

    """

    def __init__(self, output_dir: Path, failed_log: Path) -> None:
        """Initialize the sink; call :meth:`open` before handling results."""
        self._output_dir = Path(output_dir)
        self._failed_log = Path(failed_log)
        self._lock = threading.Lock()
        self._succeeded = 0
        self._failed = 0
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def output_dir(self) -> Path:
        """Return the output directory."""
        return self._output_dir

    @property
    def failed_log(self) -> Path:
        """Return the failure log path."""
        return self._failed_log

    @property
    def succeeded(self) -> int:
        """Return the number of output files written."""
        return self._succeeded

    @property
    def failed(self) -> int:
        """Return the number of failure lines written."""
        return self._failed

    def open(self) -> None:
        """Create the output directory and start an empty failure log.

        Raises:
            SinkError: If either location is not writable.

        """
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            self._failed_log.parent.mkdir(parents=True, exist_ok=True)
            self._failed_log.write_text("", encoding="utf-8")
        except OSError as exc:
            raise SinkError(
                f"Cannot prepare output locations: {exc}",
                details={"output_dir": str(self._output_dir), "failed_log": str(self._failed_log)},
            ) from exc
        self._logger.info(
            "Writing output to %s, failures to %s", self._output_dir, self._failed_log
        )

    def handle(self, result: Result) -> str | None:
        """Persist one device result.

        Returns:
            The reason the output file could not be written, or ``None``
            when the result was persisted as it is.

        """
        failure = result.failure
        if failure is not None:
            self._record_failure(result.device, failure.description, failure.reason)
            return None

        path = self._output_dir / output_filename(result.device)
        try:
            path.write_bytes(result.output or b"")
        except OSError as exc:
            reason = one_line(str(exc)) or exc.__class__.__name__
            self._logger.error("Error saving output for %s: %s", result.device, reason)
            self._record_failure(result.device, SAVE_FAILURE_DESCRIPTION, reason)
            return reason
        self._succeeded += 1
        self._logger.debug("Saved %d bytes for %s to %s", len(result.output or b""), result.device, path)
        return None

    def _record_failure(self, device: str, description: str, reason: str) -> None:
        line = f"{device}: {description}"
        reason = one_line(reason)
        if reason:
            line += f" ({reason})"
        with self._lock:
            with self._failed_log.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
            self._failed += 1
