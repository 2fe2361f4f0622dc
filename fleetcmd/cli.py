"""Command-line entry point.

Usage::

    fleetcmd -d devices.csv -t 8 -o ./result -f failed_devices.txt
    fleetcmd -d hosts.yml --transport netmiko --report-html report.html

Exit codes: 0 when every device succeeded, 1 when at least one device
failed or the run was cancelled, 2 on configuration or input errors.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from types import FrameType
from typing import Any

from . import __version__
from .config import RunConfig
from .core.exceptions import FleetCmdError
from .runner import FleetRunner

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG_ERROR = 2


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="fleetcmd",
        description=(
            "Run a list of commands on many network devices over SSH and save "
            "each device's output. Devices that fail are listed in the failure log."
        ),
    )
    parser.add_argument(
        "-d", "--devices", "--excel",
        dest="device_list",
        metavar="FILE",
        help="Device list (CSV rows or YAML hosts file).",
    )
    parser.add_argument(
        "-t", "--threads",
        dest="concurrency",
        type=int,
        metavar="N",
        help="Number of concurrent connections (default: 4).",
    )
    parser.add_argument(
        "-o", "--output",
        dest="output_dir",
        metavar="DIR",
        help="Directory to store output files (default: ./result).",
    )
    parser.add_argument(
        "-f", "--failed",
        dest="failed_log",
        metavar="FILE",
        help="File to store failed devices (default: failed_devices.txt).",
    )
    parser.add_argument("--config", metavar="FILE", help="YAML configuration file.")
    parser.add_argument("--transport", metavar="NAME", help="Transport backend: ssh or netmiko.")
    parser.add_argument("--prompt", dest="prompt_marker", metavar="TEXT", help="Prompt marker.")
    parser.add_argument(
        "--connect-timeout",
        type=float,
        metavar="SECONDS",
        help="Connection timeout in seconds (default: 10).",
    )
    parser.add_argument("--key", dest="key_filename", metavar="FILE", help="SSH private key.")
    parser.add_argument(
        "--dated-output",
        action="store_const",
        const=True,
        help="Append today's date (YYYYMMDD) to the output directory name.",
    )
    parser.add_argument(
        "--no-sync-prompt",
        dest="sync_prompt",
        action="store_const",
        const=False,
        help="Do not wait for the first prompt before sending commands.",
    )
    parser.add_argument("--report-json", metavar="FILE", help="Write a JSON run report.")
    parser.add_argument("--report-html", metavar="FILE", help="Write an HTML run report.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    # paramiko is chatty at DEBUG
    logging.getLogger("paramiko").setLevel(logging.WARNING)


def load_config(args: argparse.Namespace) -> RunConfig:
    """Layer defaults, the config file, environment and CLI flags."""
    config = RunConfig.from_yaml(Path(args.config)) if args.config else RunConfig()
    config = config.with_env()
    overrides: dict[str, Any] = {
        name: getattr(args, name)
        for name in (
            "device_list",
            "concurrency",
            "output_dir",
            "failed_log",
            "transport",
            "prompt_marker",
            "connect_timeout",
            "key_filename",
            "dated_output",
            "sync_prompt",
            "report_json",
            "report_html",
        )
        if getattr(args, name) is not None
    }
    return config.replace(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command-line interface and return the exit code."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(args)
        runner = FleetRunner(config)
    except FleetCmdError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR

    def _cancel(signum: int, frame: FrameType | None) -> None:
        logger.warning("Received signal %d, finishing in-flight devices", signum)
        runner.cancel()

    previous = {sig: signal.signal(sig, _cancel) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        report = runner.run()
    except FleetCmdError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    print(
        f"{report.succeeded} succeeded, {report.failed} failed"
        f"{' (cancelled)' if report.cancelled else ''}"
    )
    if report.failed or report.cancelled:
        return EXIT_FAILURES
    return EXIT_OK


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())
