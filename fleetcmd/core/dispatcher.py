"""Bounded-concurrency dispatcher driving device sessions to completion.

The dispatcher pulls ``DeviceSpec`` items lazily from any iterable and
keeps at most ``concurrency`` sessions in flight on a fixed thread pool.
Results are yielded in completion order, one per pulled spec.

Usage::

    dispatcher = Dispatcher(factory.factory_for("ssh"), concurrency=8)
    for result in dispatcher.run(loader.iter_specs()):
        sink.handle(result)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from .exceptions import ConfigurationError
from .models import DeviceSpec, Result
from .session import DeviceSession, SessionOptions, TransportFactory

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4


class Dispatcher:
    """Fixed-size worker pool running one ``DeviceSession`` per spec.

    Args:
        transport_factory: Builds a fresh transport for each device.
        concurrency: Maximum number of concurrently active sessions.
        session_options: Protocol parameters passed to every session.
        cancel_event: Shared cancellation signal; a private one is created
            when omitted.

    Raises:
        ConfigurationError: If ``concurrency`` is below one.

    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        concurrency: int = DEFAULT_CONCURRENCY,
        *,
        session_options: SessionOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the dispatcher."""
        if concurrency < 1:
            raise ConfigurationError(
                f"Concurrency limit must be at least 1, got {concurrency}",
                details={"concurrency": concurrency},
            )
        self._transport_factory = transport_factory
        self._concurrency = concurrency
        self._session_options = session_options or SessionOptions()
        self._cancel_event = cancel_event or threading.Event()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def concurrency(self) -> int:
        """Return the concurrency limit."""
        return self._concurrency

    @property
    def cancelled(self) -> bool:
        """Return ``True`` once cancellation has been requested."""
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop pulling new specs; in-flight sessions unwind on their own."""
        if not self._cancel_event.is_set():
            self._logger.warning("Cancellation requested, no new devices will be dispatched")
        self._cancel_event.set()

    def run(self, specs: Iterable[DeviceSpec]) -> Iterator[Result]:
        """Run every spec once and yield results as they complete.

        ``specs`` is consumed lazily: a new spec is pulled only when a worker
        slot is free.  Closing the returned iterator early cancels the run
        and waits for in-flight sessions to close their transports.

        Args:
            specs: Device descriptors, possibly an unbounded generator.

        Yields:
            One ``Result`` per pulled spec, in completion order.

        """
        source = iter(specs)
        pending: set[Future[Result]] = set()
        ready: list[Future[Result]] = []
        dispatched = completed = 0
        exhausted = False

        with ThreadPoolExecutor(
            max_workers=self._concurrency,
            thread_name_prefix="fleetcmd-worker",
        ) as pool:
            try:
                while True:
                    while not exhausted and not self.cancelled and len(pending) < self._concurrency:
                        spec = next(source, None)
                        if spec is None:
                            exhausted = True
                            break
                        pending.add(pool.submit(self._run_one, spec))
                        dispatched += 1

                    if not pending:
                        break

                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    ready = list(done)
                    while ready:
                        future = ready.pop()
                        completed += 1
                        yield future.result()
            finally:
                if pending:
                    self.cancel()
                    wait(pending)
                self._log_unconsumed([*ready, *pending])

        self._logger.info(
            "Dispatch finished: %d dispatched, %d completed%s",
            dispatched,
            completed,
            " (cancelled)" if self.cancelled else "",
        )

    def run_all(self, specs: Iterable[DeviceSpec]) -> list[Result]:
        """Run every spec and return all results as a list."""
        return list(self.run(specs))

    def _run_one(self, spec: DeviceSpec) -> Result:
        """Worker body: run one session to completion."""
        session = DeviceSession(
            spec,
            self._transport_factory,
            options=self._session_options,
            cancel_event=self._cancel_event,
        )
        return session.run()

    def _log_unconsumed(self, futures: list[Future[Result]]) -> None:
        """Log results finished after the consumer stopped iterating."""
        for future in futures:
            if future.cancelled() or future.exception() is not None:
                continue
            result = future.result()
            failure = result.failure
            self._logger.warning(
                "Result for %s not consumed: %s",
                result.device,
                "succeeded" if failure is None else f"{failure.description} ({failure.reason})",
            )
