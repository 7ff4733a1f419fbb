"""
Prometheus exporter writer for the IntelliFlash collector.
Creates one gauge per (measurement, field) pair on first sight.
"""

import logging
import re
import threading
from typing import Dict, Any, Optional, Sequence, Set, Tuple

from prometheus_client import Gauge, CollectorRegistry, start_http_server, generate_latest

from .base import Writer
from ..schema.models import MeasurementRecord

# Initialize logger
LOG = logging.getLogger(__name__)

METRIC_PREFIX = 'intelliflash'

class PrometheusWriter(Writer):
    """
    Dynamic Prometheus writer: gauges are created on demand with the
    record's tag keys as label names. Only the latest sample of each series
    is exposed.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}

        self.port = config.get('prometheus_port', 8000)
        self.start_server = config.get('start_server', True)

        # Separate registry for this writer
        self.prometheus_registry = CollectorRegistry()

        # metric name -> (gauge, label names)
        self.dynamic_metrics: Dict[str, Tuple[Gauge, Tuple[str, ...]]] = {}
        # (metric name, label names) pairs already reported as dropped
        self.dropped_series: Set[Tuple[str, Tuple[str, ...]]] = set()

        self.server_lock = threading.Lock()
        self.server_started = False

        LOG.info("PrometheusWriter initialized with dynamic metric generation")

    @staticmethod
    def _sanitize_label_value(value: Any) -> str:
        """Sanitize label values to avoid Prometheus metric issues."""
        if value is None:
            return 'unknown'
        value_str = str(value).strip()
        return value_str if value_str else 'unknown'

    @staticmethod
    def _sanitize_metric_name(measurement: str, field_name: str) -> str:
        """Create a valid Prometheus metric name from measurement and field names."""
        name = f"{METRIC_PREFIX}_{measurement}_{field_name}".lower()
        name = re.sub(r'[^a-z0-9_]', '_', name)
        return re.sub(r'_{2,}', '_', name).strip('_')

    @staticmethod
    def _sanitize_label_name(tag_key: str) -> str:
        label = re.sub(r'[^a-zA-Z0-9_]', '_', tag_key)
        return f"_{label}" if label[:1].isdigit() else label

    def _get_or_create_metric(self, metric_name: str, measurement: str, field_name: str,
                              label_names: Tuple[str, ...]) -> Optional[Gauge]:
        existing = self.dynamic_metrics.get(metric_name)
        if existing is not None:
            gauge, known_labels = existing
            if known_labels != label_names:
                if (metric_name, label_names) not in self.dropped_series:
                    self.dropped_series.add((metric_name, label_names))
                    LOG.warning(f"Dropping {metric_name} samples labelled {label_names}: "
                                f"the metric is already registered with labels {known_labels}")
                return None
            return gauge

        gauge = Gauge(
            metric_name,
            f"IntelliFlash {measurement} {field_name}",
            labelnames=label_names,
            registry=self.prometheus_registry,
        )
        self.dynamic_metrics[metric_name] = (gauge, label_names)
        return gauge

    def _start_prometheus_server(self):
        """Start the Prometheus HTTP server if not already started."""
        with self.server_lock:
            if not self.server_started:
                start_http_server(self.port, registry=self.prometheus_registry)
                self.server_started = True
                LOG.info(f"Prometheus metrics server started on port {self.port}")

    def write(self, records: Sequence[MeasurementRecord], loop_iteration: int = 1) -> bool:
        """
        Update gauges from one poll cycle's records.

        Returns:
            bool: True if successful, False otherwise
        """
        try:
            if self.start_server and not self.server_started:
                self._start_prometheus_server()

            updated = 0
            # Oldest first so each series ends on its latest sample
            for record in sorted(records, key=lambda r: r.timestamp):
                labels = {self._sanitize_label_name(k): self._sanitize_label_value(v)
                          for k, v in record.tags.items()}
                label_names = tuple(sorted(labels))
                for field_name, value in record.fields.items():
                    if value is None:
                        continue
                    metric_name = self._sanitize_metric_name(record.name, field_name)
                    gauge = self._get_or_create_metric(metric_name, record.name, field_name, label_names)
                    if gauge is None:
                        continue
                    if label_names:
                        gauge.labels(**labels).set(value)
                    else:
                        gauge.set(value)
                    updated += 1

            LOG.info(f"PrometheusWriter updated {updated} samples across {len(self.dynamic_metrics)} metrics "
                     f"(iteration {loop_iteration})")
            return True

        except Exception as e:
            LOG.error(f"Error writing to Prometheus: {e}", exc_info=True)
            return False

    def render(self) -> bytes:
        """Current exposition text, as served on /metrics."""
        return generate_latest(self.prometheus_registry)
