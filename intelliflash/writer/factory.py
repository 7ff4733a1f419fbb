"""
Writer factory for the IntelliFlash collector.
"""

import logging

from .base import Writer
from .influxdb_writer import InfluxDBWriter
from .prometheus_writer import PrometheusWriter
from .multi_writer import MultiWriter

LOG = logging.getLogger(__name__)

class WriterFactory:
    """
    Builds the writer selected by WriterConfig.output_format.
    """

    @staticmethod
    def create_writer_from_config(writer_config) -> Writer:
        """
        Args:
            writer_config: Validated WriterConfig

        Returns:
            A single writer, or a MultiWriter when both outputs are selected
        """
        settings = writer_config.to_dict()
        writers = []

        if writer_config.uses_influxdb:
            LOG.info(f"InfluxDB output: {writer_config.influxdb_url} database={writer_config.influxdb_database}")
            writers.append(InfluxDBWriter(settings))
        if writer_config.uses_prometheus:
            LOG.info(f"Prometheus output on port {writer_config.prometheus_port}")
            writers.append(PrometheusWriter(settings))

        if not writers:
            raise ValueError(f"Unsupported output format: {writer_config.output_format}")
        return writers[0] if len(writers) == 1 else MultiWriter(writers)
