"""Core configuration classes for the collector."""

import re
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from ..config.analytics_categories import resolve_system_metrics
from ..config.api_endpoints import DEFAULT_RESPONSE_TIMEOUT


@dataclass
class DataMetricsGroup:
    """One named data-analytics filter.

    Every dimension is optional; an empty dimension matches everything.
    """
    datasets: List[str] = field(default_factory=list)
    vms: List[str] = field(default_factory=list)
    protocols: List[str] = field(default_factory=list)

    def __post_init__(self):
        # The API only accepts upper-case protocol names (NFS, SMB, ISCSI, FC)
        self.protocols = [p.upper() for p in self.protocols or []]
        self.datasets = list(self.datasets or [])
        self.vms = list(self.vms or [])

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'DataMetricsGroup':
        data = data or {}
        return cls(
            datasets=data.get('datasets') or [],
            vms=data.get('vms') or [],
            protocols=data.get('protocols') or [],
        )


@dataclass
class CapacityMetricsGroup:
    """One named capacity target. No dataset paths means every pool."""
    datasets: List[str] = field(default_factory=list)

    def pool_names(self) -> List[str]:
        """Pool component (first path segment) of each configured dataset path."""
        return [path.split('/')[0] for path in self.datasets if path]

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'CapacityMetricsGroup':
        data = data or {}
        return cls(datasets=list(data.get('datasets') or []))


_DURATION_UNITS = {'ms': 0.001, 's': 1, 'm': 60}


def _seconds(value, name: str) -> float:
    """Accept plain seconds or a duration string such as '5s', '500ms' or '1m'."""
    if isinstance(value, str):
        match = re.fullmatch(r'\s*(\d+(?:\.\d+)?)\s*(ms|s|m)?\s*', value)
        if match is None:
            raise ValueError(f"{name} must be a number of seconds or a duration like '5s', got {value!r}")
        return float(match.group(1)) * _DURATION_UNITS[match.group(2) or 's']
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number of seconds, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number of seconds, got {value!r}") from None


def _named_groups(raw, group_cls, prefix: str) -> Dict[str, Any]:
    """Normalize filter groups given either as a mapping or as a list."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        items = raw.items()
    else:
        items = ((f"{prefix}-{index}", value) for index, value in enumerate(raw, start=1))

    groups = {}
    for name, value in items:
        groups[str(name)] = value if isinstance(value, group_cls) else group_cls.from_dict(value)
    return groups


@dataclass
class CollectorConfig:
    """Main configuration for the collector system."""

    # Arrays to poll (host, host:port or URL with embedded credentials)
    servers: List[str] = field(default_factory=list)
    username: Optional[str] = None
    password: Optional[str] = None
    response_timeout: float = DEFAULT_RESPONSE_TIMEOUT  # seconds

    # TLS configuration for the array API
    tls_ca: Optional[str] = None
    tls_cert: Optional[str] = None
    tls_key: Optional[str] = None
    insecure_skip_verify: bool = False

    # What to collect
    system_metrics_include: List[str] = field(default_factory=list)
    system_metrics_exclude: List[str] = field(default_factory=list)
    data_metrics: Dict[str, DataMetricsGroup] = field(default_factory=dict)
    capacity_metrics: Dict[str, CapacityMetricsGroup] = field(default_factory=dict)

    # Source of the 'array' tag: 'identity' (self-reported FQDN, falls back
    # to the configured address) or 'address' (configured address only)
    array_tag: str = 'identity'

    # Output configuration
    output: str = 'influxdb'  # 'influxdb', 'prometheus', or 'both'

    # Collection behavior
    interval_time: int = 60  # seconds between collections
    max_iterations: int = 0  # 0 = unlimited, >0 = exit after N iterations

    # Debugging
    debug: bool = False  # decode vendor error payloads on HTTP failures
    log_level: str = 'INFO'
    logfile: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.servers = list(self.servers or [])
        self.data_metrics = _named_groups(self.data_metrics, DataMetricsGroup, 'data')
        self.capacity_metrics = _named_groups(self.capacity_metrics, CapacityMetricsGroup, 'capacity')

        if self.array_tag not in ('identity', 'address'):
            raise ValueError("array_tag must be 'identity' or 'address'")

        # The array samples its analytics once per minute
        if self.interval_time < 60:
            raise ValueError("interval_time must be at least 60 seconds")

        self.response_timeout = _seconds(self.response_timeout, 'response_timeout')
        if self.response_timeout <= 0:
            raise ValueError("response_timeout must be positive")

        if bool(self.tls_cert) != bool(self.tls_key):
            raise ValueError("tls_cert and tls_key must be given together")

        if self.output not in ('influxdb', 'prometheus', 'both'):
            raise ValueError(f"Unsupported output format: {self.output}")

        if not self.system_metrics:
            raise ValueError("system_metrics_exclude removes every system metric")

    @property
    def system_metrics(self) -> List[str]:
        """System sub-categories to request after include/exclude."""
        return resolve_system_metrics(self.system_metrics_include, self.system_metrics_exclude)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CollectorConfig':
        """Create configuration from a parsed config file or Settings."""
        known = {
            'servers', 'username', 'password', 'response_timeout', 'tls_ca', 'tls_cert',
            'tls_key', 'insecure_skip_verify', 'system_metrics_include',
            'system_metrics_exclude', 'data_metrics', 'capacity_metrics', 'array_tag',
            'output', 'interval_time', 'max_iterations', 'debug', 'log_level', 'logfile',
        }
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    @classmethod
    def from_args(cls, args, settings: Optional[Dict[str, Any]] = None) -> 'CollectorConfig':
        """Create configuration from command line arguments.

        Values from the config file/environment (settings) are used where
        the command line does not set them.
        """
        merged: Dict[str, Any] = dict(settings or {})
        overrides = {
            'servers': getattr(args, 'servers', None),
            'username': getattr(args, 'username', None),
            'password': getattr(args, 'password', None),
            'response_timeout': getattr(args, 'responseTimeout', None),
            'tls_ca': getattr(args, 'tlsCa', None),
            'tls_cert': getattr(args, 'tlsCert', None),
            'tls_key': getattr(args, 'tlsKey', None),
            'insecure_skip_verify': getattr(args, 'insecureSkipVerify', None) or None,
            'system_metrics_include': getattr(args, 'systemMetrics', None),
            'system_metrics_exclude': getattr(args, 'excludeSystemMetrics', None),
            'array_tag': getattr(args, 'arrayTag', None),
            'output': getattr(args, 'output', None),
            'interval_time': getattr(args, 'intervalTime', None),
            'max_iterations': getattr(args, 'maxIterations', None),
            'debug': getattr(args, 'debug', None) or None,
            'log_level': getattr(args, 'log_level', None),
            'logfile': getattr(args, 'logfile', None),
        }
        merged.update({k: v for k, v in overrides.items() if v not in (None, [])})
        return cls.from_dict(merged)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (password redacted) for logging."""
        return {
            'servers': self.servers,
            'username': self.username,
            'password': '[REDACTED]' if self.password else None,
            'response_timeout': self.response_timeout,
            'tls_ca': self.tls_ca,
            'tls_cert': self.tls_cert,
            'insecure_skip_verify': self.insecure_skip_verify,
            'system_metrics': self.system_metrics,
            'data_metrics': sorted(self.data_metrics),
            'capacity_metrics': sorted(self.capacity_metrics),
            'array_tag': self.array_tag,
            'output': self.output,
            'interval_time': self.interval_time,
            'max_iterations': self.max_iterations,
            'debug': self.debug,
            'log_level': self.log_level,
            'logfile': self.logfile,
        }
