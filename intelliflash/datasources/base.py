"""Base DataSource interface and shared data structures."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional

from ..config.analytics_categories import AnalyticsCategory
from ..schema.models import MeasurementRecord


@dataclass
class CollectionResult:
    """Result from one collection step against one array.

    A step may issue several requests (one per data filter group); every
    failed request contributes one entry to errors while the records of the
    successful ones are kept.
    """
    collection_type: AnalyticsCategory
    records: List[MeasurementRecord] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def error_message(self) -> Optional[str]:
        if not self.errors:
            return None
        return '; '.join(str(e) for e in self.errors)


@dataclass
class SystemInfo:
    """System identification information."""
    host: str
    fqdn: Optional[str] = None


class DataSource(ABC):
    """Abstract base class for the collection steps run against one array."""

    def __init__(self, config):
        self.config = config
        self._system_info: Optional[SystemInfo] = None

    @property
    def system_info(self) -> Optional[SystemInfo]:
        """Get system information if available."""
        return self._system_info

    @property
    @abstractmethod
    def array_name(self) -> str:
        """Value of the 'array' tag attached to every record."""

    @abstractmethod
    def resolve_identity(self) -> CollectionResult:
        """Look up the array's self-reported name."""

    @abstractmethod
    def collect_system_data(self) -> CollectionResult:
        """Collect system analytics (CPU, NETWORK, CACHE_HITS, POOL_PERFORMANCE)."""

    @abstractmethod
    def collect_data_analytics(self) -> CollectionResult:
        """Collect per-entity analytics, one request per filter group."""

    @abstractmethod
    def collect_capacity_data(self) -> CollectionResult:
        """Collect pool capacity snapshots."""
