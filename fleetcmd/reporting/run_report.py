"""Run report: per-device outcomes rendered to JSON or HTML.

Collects every ``Result`` of a run and renders a summary (totals, failures
grouped by stage) plus one row per device.  HTML output uses a Jinja2
template shipped next to this module.

Usage::

    report = RunReport(title="Nightly backup")
    for result in dispatcher.run(specs):
        report.add(result)
    report.write_html("output/report.html")
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.models import Result

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
DEFAULT_TEMPLATE = "run_report.html"

# stage recorded for devices whose output could not be written
SAVE_FAILURE_STAGE = "output"


@dataclass
class DeviceRecord:
    """One device row of the report.

    Attributes:
        device: Device address.
        status: ``succeeded`` or ``failed``.
        stage: Failed stage, empty on success.
        reason: Failure reason, empty on success.
        output_bytes: Size of the captured output.
        duration_seconds: Session wall-clock time.

    """

    device: str
    status: str
    stage: str = ""
    reason: str = ""
    output_bytes: int = 0
    duration_seconds: float = 0.0

    @classmethod
    def from_result(cls, result: Result, save_error: str | None = None) -> DeviceRecord:
        """Build a record from a session result.

        A successful session whose output could not be saved is recorded as
        failed at the ``output`` stage with ``save_error`` as the reason.
        """
        failure = result.failure
        if failure is None and save_error is not None:
            return cls(
                device=result.device,
                status="failed",
                stage=SAVE_FAILURE_STAGE,
                reason=save_error,
                duration_seconds=round(result.duration_seconds, 3),
            )
        if failure is None:
            return cls(
                device=result.device,
                status="succeeded",
                output_bytes=len(result.output or b""),
                duration_seconds=round(result.duration_seconds, 3),
            )
        return cls(
            device=result.device,
            status="failed",
            stage=failure.stage.value,
            reason=failure.reason,
            duration_seconds=round(result.duration_seconds, 3),
        )


@dataclass
class RunReport:
    """Aggregated outcome of one run.

    Attributes:
        title: Report title.
        started_at: ISO-8601 timestamp of report creation.
        cancelled: Whether the run was cancelled before every device ran.
        records: Device rows in completion order.

    """

    title: str = "Fleet Command Run"
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    cancelled: bool = False
    records: list[DeviceRecord] = field(default_factory=list)

    def add(self, result: Result, save_error: str | None = None) -> None:
        """Record one device result and, if any, the error saving its output."""
        self.records.append(DeviceRecord.from_result(result, save_error))

    @property
    def total(self) -> int:
        """Number of devices recorded."""
        return len(self.records)

    @property
    def succeeded(self) -> int:
        """Number of devices that completed every command."""
        return sum(1 for r in self.records if r.status == "succeeded")

    @property
    def failed(self) -> int:
        """Number of devices that failed."""
        return self.total - self.succeeded

    @property
    def by_stage(self) -> dict[str, int]:
        """Failure counts keyed by stage."""
        return dict(Counter(r.stage for r in self.records if r.status == "failed"))

    @property
    def summary(self) -> dict[str, Any]:
        """Return the headline numbers."""
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "by_stage": self.by_stage,
            "cancelled": self.cancelled,
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize the report to a plain dictionary."""
        return {
            "title": self.title,
            "started_at": self.started_at,
            "summary": self.summary,
            "devices": [asdict(r) for r in self.records],
        }

    def to_json(self) -> str:
        """Serialize the report to a JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def write_json(self, output_path: str | Path) -> Path:
        """Write the JSON report to disk and return its path."""
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(self.to_json(), encoding="utf-8")
        logger.info("JSON report written: %s", output)
        return output

    def write_html(
        self,
        output_path: str | Path,
        template_dir: Path = TEMPLATE_DIR,
        template_name: str = DEFAULT_TEMPLATE,
    ) -> Path:
        """Render the HTML report and write it to disk.

        Args:
            output_path: Destination file path.
            template_dir: Directory containing Jinja2 templates.
            template_name: Name of the report template.

        Returns:
            Path to the generated report file.

        """
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(self.render_html(template_dir, template_name), encoding="utf-8")
        logger.info("HTML report written: %s", output)
        return output

    def render_html(
        self,
        template_dir: Path = TEMPLATE_DIR,
        template_name: str = DEFAULT_TEMPLATE,
    ) -> str:
        """Render the Jinja2 template with the report data."""
        env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
        )
        template = env.get_template(template_name)
        return template.render(
            title=self.title,
            started_at=self.started_at,
            summary=self.summary,
            records=self.records,
        )
