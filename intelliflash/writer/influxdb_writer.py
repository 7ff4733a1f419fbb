"""
InfluxDB writer for the IntelliFlash collector.
Writes measurement records to InfluxDB 3.x with second precision.

Note: the batching setup follows batching_example.py from the https://github.com/InfluxCommunity/influxdb3-python project
License: Apache License, Version 2.0, January 2004 (http://www.apache.org/licenses/)
"""

import logging
import os
import threading
import time
from typing import Dict, Any, List, Optional, Sequence

import requests
from influxdb_client_3 import InfluxDBClient3, Point, WritePrecision, WriteOptions, write_client_options
from influxdb_client_3.exceptions.exceptions import InfluxDBError

from .base import Writer
from ..schema.models import MeasurementRecord

LOG = logging.getLogger(__name__)

# Batches are flushed at least once per collection interval
BATCH_SIZE = 500
FLUSH_INTERVAL_MS = 60_000


class WriteStats:
    """
    Batch outcome counters fed by the client's background flush thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.batches_ok = 0
        self.batches_failed = 0
        self.retries = 0
        self.last_status: Optional[str] = None
        self.started_ns = time.time_ns()

    def on_success(self, conf, data: str):
        with self._lock:
            self.batches_ok += 1
            self.last_status = f"ok ({self.batches_ok} batches)"
        LOG.debug(f"Flushed batch of {len(data)} bytes")

    def on_error(self, conf, data: str, exception: InfluxDBError):
        with self._lock:
            self.batches_failed += 1
            self.last_status = f"failed: {exception}"
        LOG.error(f"Dropped batch of {len(data)} bytes: {exception}")

    def on_retry(self, conf, data: str, exception: InfluxDBError):
        with self._lock:
            self.retries += 1
        LOG.warning(f"Retrying batch of {len(data)} bytes (retry {self.retries}): {exception}")

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'batches_ok': self.batches_ok,
                'batches_failed': self.batches_failed,
                'retries': self.retries,
                'uptime_ms': (time.time_ns() - self.started_ns) // 1_000_000,
                'last_status': self.last_status,
            }


class InfluxDBWriter(Writer):
    """
    Writer implementation for InfluxDB 3.x.

    Records become one Point each; records without a usable field
    (unrecognized analytics categories, null samples) are left out.
    """

    def __init__(self, config: Dict[str, Any], client: Optional[InfluxDBClient3] = None):
        """
        Args:
            config: Writer settings (see WriterConfig.to_dict)
            client: Pre-built client, used instead of creating one
        """
        self.url = config.get('influxdb_url') or os.getenv('INFLUXDB_URL', 'https://influxdb:8181')
        self.token = config.get('influxdb_token') or os.getenv('INFLUXDB_TOKEN', '')
        self.database = config.get('influxdb_database') or os.getenv('INFLUXDB_DATABASE', 'intelliflash')
        self.tls_ca = config.get('tls_ca')
        if self.tls_ca and not os.path.exists(self.tls_ca):
            LOG.warning(f"InfluxDB CA certificate not found, using system trust store: {self.tls_ca}")
            self.tls_ca = None

        self.stats = WriteStats()
        self.client = client if client is not None else self._create_client()
        LOG.info(f"InfluxDBWriter ready: {self.url} database={self.database}")

    def _create_client(self) -> InfluxDBClient3:
        batching = WriteOptions(
            batch_size=BATCH_SIZE,
            flush_interval=FLUSH_INTERVAL_MS,
            jitter_interval=2_000,
            retry_interval=5_000,
            max_retries=2,
            max_retry_delay=15_000,
            max_close_wait=60_000,
            exponential_base=2,
        )
        options = write_client_options(
            success_callback=self.stats.on_success,
            error_callback=self.stats.on_error,
            retry_callback=self.stats.on_retry,
            write_options=batching,
        )

        extra = {'ssl_ca_cert': self.tls_ca} if self.tls_ca else {}
        client = InfluxDBClient3(
            host=self.url,
            database=self.database,
            token=self.token,
            enable_gzip=True,
            verify_ssl=True,
            timeout=60_000,  # ms
            write_client_options=options,
            **extra,
        )
        self._create_database_if_missing()
        return client

    @staticmethod
    def _database_names(payload) -> List[str]:
        # Older servers answer {"databases": [...]}, newer ones [{"iox::database": ...}]
        if isinstance(payload, dict):
            return list(payload.get('databases', []))
        if isinstance(payload, list):
            return [item.get('iox::database') if isinstance(item, dict) else item for item in payload]
        return []

    def _create_database_if_missing(self) -> None:
        endpoint = f"{self.url}/api/v3/configure/database"
        request_args = {
            'headers': {'Authorization': f'Bearer {self.token}', 'Accept': 'application/json'},
            'timeout': 10,
            'verify': self.tls_ca or True,
        }
        try:
            listing = requests.get(endpoint, params={'format': 'json'}, **request_args)
            if listing.status_code != 200:
                LOG.warning(f"Could not list InfluxDB databases: HTTP {listing.status_code}")
                return
            if self.database in self._database_names(listing.json()):
                LOG.debug(f"InfluxDB database '{self.database}' exists")
                return

            created = requests.post(endpoint, json={'db': self.database}, **request_args)
            if created.status_code in (200, 201, 204):
                LOG.info(f"Created InfluxDB database '{self.database}'")
            else:
                LOG.error(f"Could not create InfluxDB database '{self.database}': HTTP {created.status_code}")
        except (requests.RequestException, ValueError) as e:
            LOG.warning(f"Skipping InfluxDB database check, the first write will create it: {e}")

    @staticmethod
    def to_point(record: MeasurementRecord) -> Optional[Point]:
        """Convert one record; None when it has no usable field."""
        fields = {name: value for name, value in record.fields.items() if value is not None}
        if not fields:
            return None

        point = Point(record.name)
        for key, value in record.tags.items():
            if value not in (None, ''):
                point.tag(key, str(value))
        for name, value in fields.items():
            point.field(name, value)
        return point.time(record.timestamp, WritePrecision.S)

    def write(self, records: Sequence[MeasurementRecord], loop_iteration: int = 1) -> bool:
        """
        Queue one poll cycle's records on the batching client.

        Returns:
            bool: True if the points were accepted, False otherwise
        """
        if self.client is None:
            LOG.error("InfluxDB writer is closed")
            return False

        points = [p for p in (self.to_point(r) for r in records) if p is not None]
        if len(points) < len(records):
            LOG.debug(f"Left out {len(records) - len(points)} records without fields")
        if not points:
            return True

        try:
            self.client.write(record=points)
        except Exception as e:
            LOG.error(f"InfluxDB write failed (iteration {loop_iteration}): {e}")
            return False

        LOG.info(f"Queued {len(points)} points for InfluxDB (iteration {loop_iteration})")
        return True

    def close(self, timeout_seconds: int = 90) -> None:
        """Flush pending batches and close the client, giving up after timeout_seconds."""
        client, self.client = self.client, None
        if client is None:
            return

        done = threading.Event()

        def flush_and_close():
            try:
                client.close()
            except Exception as e:
                LOG.warning(f"Error while closing InfluxDB client: {e}")
            finally:
                done.set()

        threading.Thread(target=flush_and_close, name='influxdb-close', daemon=True).start()
        if done.wait(timeout_seconds):
            LOG.info(f"InfluxDB client closed: {self.stats.snapshot()}")
        else:
            LOG.warning(f"InfluxDB client did not close within {timeout_seconds}s, pending points may be lost")
