"""Request construction for the IntelliFlash analytics API.

Each analytics family maps to one operation. The request bodies are JSON
arrays of positional arguments, where null means "match all".
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from ..config.analytics_categories import (
    AnalyticsCategory, CATEGORY_ENDPOINTS, DEFAULT_SYSTEM_METRICS, parse_category
)
from ..core.exceptions import UnknownCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalyticsRequest:
    """One HTTP call against one array."""
    category: AnalyticsCategory
    endpoint_key: str
    method: str
    body: Any
    group: Optional[str] = None

    def payload(self) -> bytes:
        return json.dumps(self.body).encode('utf-8')

    @property
    def label(self) -> str:
        """Short description used in logs and error reports."""
        if self.group:
            return f"{self.category.value}[{self.group}]"
        return self.category.value


def _or_null(values: Sequence[str]) -> Optional[List[str]]:
    # An empty list would make the API match nothing
    return list(values) if values else None


def build_system_request(system_metrics: Optional[Sequence[str]] = None) -> AnalyticsRequest:
    """Single request covering every selected system sub-category."""
    metrics = list(system_metrics) if system_metrics else list(DEFAULT_SYSTEM_METRICS)
    return AnalyticsRequest(
        category=AnalyticsCategory.SYSTEM,
        endpoint_key=CATEGORY_ENDPOINTS[AnalyticsCategory.SYSTEM],
        method='POST',
        body=[metrics],
    )


def build_data_requests(data_metrics: Mapping[str, Any]) -> List[AnalyticsRequest]:
    """One request per named filter group, in configuration order."""
    requests_out = []
    for name, group in data_metrics.items():
        body = [
            _or_null(group.datasets),
            _or_null(group.vms),
            _or_null([p.upper() for p in group.protocols]),
        ]
        requests_out.append(AnalyticsRequest(
            category=AnalyticsCategory.DATA,
            endpoint_key=CATEGORY_ENDPOINTS[AnalyticsCategory.DATA],
            method='POST',
            body=body,
            group=name,
        ))
    return requests_out


def build_capacity_request() -> AnalyticsRequest:
    return AnalyticsRequest(
        category=AnalyticsCategory.CAPACITY,
        endpoint_key=CATEGORY_ENDPOINTS[AnalyticsCategory.CAPACITY],
        method='GET',
        body=[],
    )


def build_identity_request() -> AnalyticsRequest:
    return AnalyticsRequest(
        category=AnalyticsCategory.IDENTITY,
        endpoint_key=CATEGORY_ENDPOINTS[AnalyticsCategory.IDENTITY],
        method='POST',
        body=[],
    )


def build_requests(category, system_metrics: Optional[Sequence[str]] = None,
                   data_metrics: Optional[Mapping[str, Any]] = None) -> List[AnalyticsRequest]:
    """
    Build every request needed to collect one analytics category.

    Args:
        category: AnalyticsCategory or its name
        system_metrics: Sub-categories for SYSTEM (default: all four)
        data_metrics: Named filter groups for DATA

    Raises:
        UnknownCategory: If the category is not recognized
    """
    try:
        resolved = parse_category(category)
    except ValueError:
        raise UnknownCategory(category) from None

    if resolved is AnalyticsCategory.SYSTEM:
        built = [build_system_request(system_metrics)]
    elif resolved is AnalyticsCategory.DATA:
        built = build_data_requests(data_metrics or {})
    elif resolved is AnalyticsCategory.CAPACITY:
        built = [build_capacity_request()]
    elif resolved is AnalyticsCategory.IDENTITY:
        built = [build_identity_request()]
    else:
        raise UnknownCategory(category)

    logger.debug(f"Built {len(built)} {resolved.value} request(s): {[r.body for r in built]}")
    return built
