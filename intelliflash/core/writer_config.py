"""Writer configuration abstraction.

Sink settings live apart from CollectorConfig; they are only validated for
the outputs actually selected.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

OUTPUT_FORMATS = ('influxdb', 'prometheus', 'both')


@dataclass
class WriterConfig:
    """Configuration specific to output writers."""

    output_format: str = 'influxdb'

    # InfluxDB 3 connection, required when output_format includes influxdb
    influxdb_url: Optional[str] = None
    influxdb_token: Optional[str] = None
    influxdb_database: Optional[str] = None
    tls_ca: Optional[str] = None  # CA bundle for the InfluxDB endpoint

    # Exporter port when output_format includes prometheus
    prometheus_port: int = 8000

    @property
    def uses_influxdb(self) -> bool:
        return self.output_format in ('influxdb', 'both')

    @property
    def uses_prometheus(self) -> bool:
        return self.output_format in ('prometheus', 'both')

    def __post_init__(self):
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format: {self.output_format}")

        if self.uses_influxdb:
            missing = [name for name in ('influxdb_url', 'influxdb_token', 'influxdb_database')
                       if not getattr(self, name)]
            if missing:
                raise ValueError(f"{', '.join(missing)} required for InfluxDB output")

    def to_dict(self) -> Dict[str, Any]:
        """Settings handed to the writer constructors."""
        settings: Dict[str, Any] = {'output_format': self.output_format}
        if self.uses_influxdb:
            settings['influxdb_url'] = self.influxdb_url
            settings['influxdb_token'] = self.influxdb_token
            settings['influxdb_database'] = self.influxdb_database
            settings['tls_ca'] = self.tls_ca
        if self.uses_prometheus:
            settings['prometheus_port'] = self.prometheus_port
        return settings

    @classmethod
    def from_args(cls, args, settings: Optional[Dict[str, Any]] = None) -> 'WriterConfig':
        """Create WriterConfig from command line arguments, falling back to
        config file/environment settings."""
        settings = settings or {}

        def pick(arg_name: str, key: str, default=None):
            value = getattr(args, arg_name, None)
            return value if value is not None else settings.get(key, default)

        return cls(
            output_format=pick('output', 'output', 'influxdb'),
            influxdb_url=pick('influxdbUrl', 'influxdb_url'),
            influxdb_token=pick('influxdbToken', 'influxdb_token'),
            influxdb_database=pick('influxdbDatabase', 'influxdb_database'),
            tls_ca=pick('influxdbTlsCa', 'influxdb_tls_ca'),
            prometheus_port=int(pick('prometheus_port', 'prometheus_port', 8000)),
        )
