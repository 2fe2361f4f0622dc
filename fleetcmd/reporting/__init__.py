"""Result persistence and run reporting.

The ``FileResultSink`` writes per-device output files and the failure
log; the ``RunReport`` aggregates outcomes and renders JSON or HTML.
"""

from .result_sink import FileResultSink
from .run_report import DeviceRecord, RunReport

__all__ = [
    "DeviceRecord",
    "FileResultSink",
    "RunReport",
]
