"""Unit tests for the RunReport."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from fleetcmd.core.models import Result
from fleetcmd.core.states import Stage
from fleetcmd.reporting.run_report import DeviceRecord, RunReport


@pytest.fixture
def report() -> RunReport:
    """Report holding two successes and two failures."""
    report = RunReport(title="Nightly backup")
    report.add(Result.success("10.0.0.1", b"router> ", duration_seconds=1.23456))
    report.add(Result.success("10.0.0.2", b""))
    report.add(Result.failed("10.0.0.3", Stage.CONNECT, "Connection refused"))
    report.add(Result.failed("10.0.0.4", Stage.CONNECT, "timed out"))
    return report


class TestDeviceRecord:
    """Tests for building rows from results."""

    def test_success_record(self) -> None:
        record = DeviceRecord.from_result(Result.success("r1", b"abc", duration_seconds=0.12345))
        assert record.status == "succeeded"
        assert record.output_bytes == 3
        assert record.stage == ""
        assert record.duration_seconds == 0.123

    def test_failure_record(self) -> None:
        record = DeviceRecord.from_result(Result.failed("r1", Stage.COMMAND, "closed"))
        assert record.status == "failed"
        assert record.stage == "command"
        assert record.reason == "closed"
        assert record.output_bytes == 0

    def test_save_error_turns_success_into_failure(self) -> None:
        record = DeviceRecord.from_result(Result.success("r1", b"abc"), save_error="No space left on device")
        assert record.status == "failed"
        assert record.stage == "output"
        assert record.reason == "No space left on device"
        assert record.output_bytes == 0


class TestRunReport:
    """Tests for aggregation and rendering."""

    def test_counts(self, report: RunReport) -> None:
        assert report.total == 4
        assert report.succeeded == 2
        assert report.failed == 2
        assert report.by_stage == {"connect": 2}

    def test_save_error_counted_as_failure(self) -> None:
        report = RunReport()
        report.add(Result.success("r1", b"abc"), save_error="disk full")
        report.add(Result.success("r2", b"abc"))
        assert report.succeeded == 1
        assert report.failed == 1
        assert report.by_stage == {"output": 1}

    def test_empty_report(self) -> None:
        report = RunReport()
        assert report.summary == {
            "total": 0,
            "succeeded": 0,
            "failed": 0,
            "by_stage": {},
            "cancelled": False,
        }

    def test_json_structure(self, report: RunReport) -> None:
        data = json.loads(report.to_json())
        assert data["title"] == "Nightly backup"
        assert data["summary"]["failed"] == 2
        assert [d["device"] for d in data["devices"]] == [
            "10.0.0.1",
            "10.0.0.2",
            "10.0.0.3",
            "10.0.0.4",
        ]

    def test_write_json(self, report: RunReport, tmp_path: Path) -> None:
        path = report.write_json(tmp_path / "reports" / "run.json")
        assert json.loads(path.read_text(encoding="utf-8"))["summary"]["total"] == 4

    def test_html_contains_devices(self, report: RunReport, tmp_path: Path) -> None:
        report.cancelled = True
        path = report.write_html(tmp_path / "run.html")
        html = path.read_text(encoding="utf-8")

        assert "<title>Nightly backup</title>" in html
        assert "10.0.0.3" in html
        assert "Connection refused" in html
        assert "connect: 2" in html
        assert "(cancelled)" in html

    def test_html_escapes_reasons(self) -> None:
        report = RunReport()
        report.add(Result.failed("r1", Stage.COMMAND, "<script>alert(1)</script>"))
        html = report.render_html()
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
