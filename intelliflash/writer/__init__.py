"""Writer module for the IntelliFlash collector.

Provides writer implementations for different output formats.
"""

from .base import Writer
from .accumulator import MetricAccumulator
from .factory import WriterFactory
from .influxdb_writer import InfluxDBWriter
from .prometheus_writer import PrometheusWriter
from .multi_writer import MultiWriter

__all__ = ['Writer', 'MetricAccumulator', 'WriterFactory', 'InfluxDBWriter', 'PrometheusWriter', 'MultiWriter']
