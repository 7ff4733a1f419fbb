"""Main collector orchestration logic.

One poll cycle fans out to every configured array on its own worker thread,
runs the collection steps for that array in order, and joins all workers
before handing the accumulated records to the writer.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Callable, List, Optional, Tuple, Dict, Any

import requests

from ..datasources.base import CollectionResult
from ..datasources.live_api import IntelliflashAPIClient, LiveAPIDataSource, build_session
from ..schema.models import CollectionError, PollResult, ServerTarget
from ..writer.accumulator import MetricAccumulator
from ..writer.base import Writer
from ..writer.factory import WriterFactory
from .config import CollectorConfig
from .exceptions import IntelliflashError, NoServersConfigured
from .writer_config import WriterConfig


class PollState(Enum):
    IDLE = 'idle'
    DISPATCHED = 'dispatched'
    COLLECTING = 'collecting'
    SETTLED = 'settled'


class MetricsCollector:
    """Main orchestrator for IntelliFlash metrics collection.

    The HTTP session and API client are created once, before the first
    fan-out, and shared by every server task for the collector's lifetime.
    """

    def __init__(self, config: CollectorConfig, writer_config: Optional[WriterConfig] = None,
                 writer: Optional[Writer] = None, session: Optional[requests.Session] = None,
                 clock: Optional[Callable[[], float]] = None):
        """Initialize collector with configuration.

        Args:
            config: Collector configuration object
            writer_config: Writer configuration; the writer is built from it on first use
            writer: Ready-made writer, takes precedence over writer_config
            session: HTTP session to reuse instead of building one from the TLS settings
            clock: Wall-clock source for capacity timestamps (defaults to time.time)
        """
        self.config = config
        self.writer_config = writer_config
        self.writer = writer
        self.clock = clock or time.time
        self.logger = logging.getLogger(__name__)

        self.session = session if session is not None else build_session(config)
        self.client = IntelliflashAPIClient(
            self.session,
            username=config.username,
            password=config.password,
            response_timeout=config.response_timeout,
            debug=config.debug,
        )

        self.state = PollState.IDLE

        # Statistics tracking
        self.collections_completed = 0
        self.last_collection_time: Optional[float] = None

    def _steps(self, datasource: LiveAPIDataSource) -> List[Tuple[str, Callable[[], CollectionResult]]]:
        steps = []
        if self.config.array_tag == 'identity':
            steps.append(('identity', datasource.resolve_identity))
        steps.append(('system', datasource.collect_system_data))
        if self.config.data_metrics:
            steps.append(('data', datasource.collect_data_analytics))
        if self.config.capacity_metrics:
            steps.append(('capacity', datasource.collect_capacity_data))
        return steps

    def _poll_server(self, server: str, accumulator: MetricAccumulator) -> Tuple[int, List[CollectionError]]:
        """Run every enabled collection step against one array.

        Returns:
            Number of records added to the accumulator and the failures seen
        """
        failures: List[CollectionError] = []

        def report(step: str, error: Exception) -> None:
            failure = CollectionError(server=server, step=step, error=error)
            accumulator.add_error(failure)
            failures.append(failure)

        target = ServerTarget.parse(server)
        try:
            self.client.credentials(target)
        except IntelliflashError as e:
            self.logger.error(f"Skipping {server}: {e}")
            report('credentials', e)
            return 0, failures

        datasource = LiveAPIDataSource(target, self.client, self.config, clock=self.clock)
        emitted = 0

        for step, run in self._steps(datasource):
            try:
                result = run()
            except Exception as e:
                self.logger.error(f"Unexpected error in {step} collection for {server}: {e}", exc_info=True)
                report(step, e)
                continue

            accumulator.add_records(result.records)
            emitted += len(result.records)
            for error in result.errors:
                report(step, error)

            if result.success:
                self.logger.info(f"{step.capitalize()} collection for {server}: {len(result.records)} records")
            else:
                self.logger.warning(f"{step.capitalize()} collection for {server} incomplete: {result.error_message}")

        return emitted, failures

    def gather(self, accumulator: MetricAccumulator) -> PollResult:
        """Poll every configured array once.

        Every server task is joined before this returns; failures are
        reported to the accumulator and the returned PollResult.

        Raises:
            NoServersConfigured: The server list is empty (no request is made)
        """
        servers = list(self.config.servers)
        if not servers:
            raise NoServersConfigured()

        poll_result = PollResult(servers=servers)
        self.state = PollState.DISPATCHED
        try:
            with ThreadPoolExecutor(max_workers=len(servers), thread_name_prefix='intelliflash-poll') as executor:
                futures = {executor.submit(self._poll_server, server, accumulator): server for server in servers}
                self.state = PollState.COLLECTING

                for future in as_completed(futures):
                    server = futures[future]
                    try:
                        emitted, failures = future.result()
                    except Exception as e:
                        self.logger.error(f"Server task for {server} failed: {e}", exc_info=True)
                        failure = CollectionError(server=server, step='poll', error=e)
                        accumulator.add_error(failure)
                        poll_result.errors.append(failure)
                        continue
                    poll_result.records_emitted += emitted
                    poll_result.errors.extend(failures)
        finally:
            self.state = PollState.SETTLED

        return poll_result

    def run_single_collection(self) -> bool:
        """Run one poll cycle and forward its records to the writer.

        Returns:
            True if every step and the write succeeded, False otherwise
        """
        start_time = time.time()
        accumulator = MetricAccumulator()

        poll_result = self.gather(accumulator)
        records = accumulator.records

        if self.writer is None and self.writer_config is not None:
            self.writer = WriterFactory.create_writer_from_config(self.writer_config)

        write_ok = True
        if self.writer is not None and records:
            write_ok = self.writer.write(records, loop_iteration=self.collections_completed + 1)
            if not write_ok:
                self.logger.error("Writer reported a failed write")

        self.last_collection_time = time.time()
        self.logger.info(
            f"Collection cycle finished in {self.last_collection_time - start_time:.2f}s: "
            f"{poll_result.records_emitted} records from {len(poll_result.servers)} servers, "
            f"{len(poll_result.errors)} errors"
        )
        return poll_result.success and write_ok

    def run_continuous(self) -> None:
        """Run the collection loop every interval_time seconds.

        Stops after max_iterations cycles (0 = unlimited) or on interrupt.
        """
        iteration_count = 0
        self.logger.info(f"Starting continuous collection (interval: {self.config.interval_time}s, max_iterations: {self.config.max_iterations if self.config.max_iterations > 0 else 'unlimited'})")

        try:
            while True:
                iteration_count += 1

                if self.config.max_iterations > 0 and iteration_count > self.config.max_iterations:
                    self.logger.info(f"Reached maximum iterations ({self.config.max_iterations}) - exiting")
                    break

                self.logger.info(f"Starting collection iteration {iteration_count} of {self.config.max_iterations if self.config.max_iterations > 0 else 'unlimited'}")
                cycle_start = time.time()

                success = self.run_single_collection()
                if not success:
                    self.logger.warning("Collection cycle had errors, continuing...")

                self.collections_completed = iteration_count

                # Wait for next collection (unless this was the final iteration)
                if self.config.max_iterations == 0 or iteration_count < self.config.max_iterations:
                    wait = max(0.0, self.config.interval_time - (time.time() - cycle_start))
                    self.logger.info(f"Waiting {wait:.0f} seconds until next collection...")
                    time.sleep(wait)
                else:
                    self.logger.info(f"Completed final iteration {iteration_count} - not waiting for interval")

        except KeyboardInterrupt:
            self.logger.info("Received interrupt signal, shutting down...")
        except Exception as e:
            self.logger.error(f"Collection loop error: {e}")
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        """Close the writer (flushing pending data) and the HTTP session."""
        if self.writer:
            self.logger.info("Collection finished - closing writer and flushing remaining data...")
            try:
                self.writer.close(timeout_seconds=90)
                self.logger.info("Writer closed successfully")
            except Exception as e:
                self.logger.warning(f"Error closing writer: {e}")
            self.writer = None

        if self.session is not None:
            self.session.close()

        self.logger.info(f"Collector cleanup completed: {self.get_statistics()}")

    def get_statistics(self) -> Dict[str, Any]:
        """Get collection statistics."""
        return {
            'collections_completed': self.collections_completed,
            'last_collection_time': self.last_collection_time,
            'servers': list(self.config.servers),
            'state': self.state.value,
        }
