"""
Analytics categorization for the IntelliFlash collector

The array exposes three families of metrics:
- SYSTEM: per-controller and per-pool performance history (four sub-categories)
- DATA: per-entity history (datasets, VMs, protocols) selected by filter groups
- CAPACITY: pool size snapshots with no time series

IDENTITY is not a metrics family; it resolves the array's own name so that
records can be tagged with it.
"""

from enum import Enum
from typing import List, Optional, Sequence


class AnalyticsCategory(Enum):
    """Request families understood by the request builder"""
    SYSTEM = "system"
    DATA = "data"
    CAPACITY = "capacity"
    IDENTITY = "identity"


class SystemAnalyticsType(Enum):
    """Sub-categories reported by getOneMinuteSystemAnalyticsHistory"""
    NETWORK = "NETWORK"
    POOL_PERFORMANCE = "POOL_PERFORMANCE"
    CPU = "CPU"
    CACHE_HITS = "CACHE_HITS"


# Default request order
DEFAULT_SYSTEM_METRICS = [t.value for t in SystemAnalyticsType]

CAPACITY_MEASUREMENT = 'CAPACITY'

# Endpoint key used for each metrics family
CATEGORY_ENDPOINTS = {
    AnalyticsCategory.SYSTEM: 'system_analytics',
    AnalyticsCategory.DATA: 'data_analytics',
    AnalyticsCategory.CAPACITY: 'pools',
    AnalyticsCategory.IDENTITY: 'system_properties',
}


def parse_category(value) -> AnalyticsCategory:
    """
    Resolve a category from an enum member or its (case-insensitive) name.

    Raises:
        ValueError: If the value does not name a known category
    """
    if isinstance(value, AnalyticsCategory):
        return value
    if isinstance(value, str):
        try:
            return AnalyticsCategory[value.strip().upper()]
        except KeyError:
            pass
    raise ValueError(f"Unknown analytics category: {value!r}")


def resolve_system_metrics(include: Optional[Sequence[str]] = None,
                           exclude: Optional[Sequence[str]] = None) -> List[str]:
    """
    Work out which system sub-categories to request.

    An empty include list means all known sub-categories. Names are
    upper-cased; unknown names are passed through so that newer array
    firmware categories can still be requested.
    """
    selected = [name.upper() for name in include] if include else list(DEFAULT_SYSTEM_METRICS)
    excluded = {name.upper() for name in (exclude or [])}
    return [name for name in selected if name not in excluded]
