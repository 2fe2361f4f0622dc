"""End-to-end run orchestration.

Wires the run configuration to the device list, the dispatcher, the
result sink and the run report::

    device list -> Dispatcher -> DeviceSession (per device) -> Result
                                                   -> FileResultSink
                                                   -> RunReport

Usage::

    runner = FleetRunner(RunConfig(device_list=Path("devices.csv")))
    report = runner.run()
"""

from __future__ import annotations

import logging

from .config import RunConfig
from .core.dispatcher import Dispatcher
from .core.exceptions import ConfigurationError
from .inventory.device_list import DeviceListLoader
from .reporting.result_sink import FileResultSink
from .reporting.run_report import RunReport
from .transports.transport_factory import TransportFactory

logger = logging.getLogger(__name__)


class FleetRunner:
    """Run one configured batch of devices to completion.

    Args:
        config: Settings for the run.
        transport_factory: Backend registry; a default one is used when
            omitted.

    Raises:
        ConfigurationError: If no device list is configured or the
            transport name is unknown.

    """

    def __init__(
        self,
        config: RunConfig,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        """Resolve the transport and build the dispatcher."""
        if config.device_list is None:
            raise ConfigurationError("No device list configured")
        self._config = config
        factory = transport_factory or TransportFactory()
        self._loader = DeviceListLoader(
            config.device_list,
            command_separator=config.command_separator,
        )
        self._sink = FileResultSink(config.effective_output_dir, config.failed_log)
        self._dispatcher = Dispatcher(
            factory.factory_for(config.transport, **config.transport_options()),
            concurrency=config.concurrency,
            session_options=config.session_options(),
        )
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def sink(self) -> FileResultSink:
        """Return the result sink."""
        return self._sink

    def cancel(self) -> None:
        """Request cancellation of the run."""
        self._dispatcher.cancel()

    def run(self) -> RunReport:
        """Validate inputs, dispatch every device, and persist results.

        Returns:
            The aggregated run report.

        Raises:
            InventoryError: If the device list is unreadable or invalid.
            SinkError: If the output locations cannot be prepared.

        """
        total = self._loader.validate()
        self._sink.open()
        report = RunReport()

        self._logger.info(
            "Running %d devices with %d workers over '%s'",
            total,
            self._dispatcher.concurrency,
            self._config.transport,
        )
        for result in self._dispatcher.run(self._loader.iter_specs()):
            save_error = self._sink.handle(result)
            report.add(result, save_error=save_error)

        report.cancelled = self._dispatcher.cancelled
        self._logger.info(
            "Run finished: %d succeeded, %d failed, %d not dispatched",
            report.succeeded,
            report.failed,
            total - report.total,
        )

        if self._config.report_json:
            report.write_json(self._config.report_json)
        if self._config.report_html:
            report.write_html(self._config.report_html)
        return report
