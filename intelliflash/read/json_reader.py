"""
JSON reader for IntelliFlash API responses.

Every analytics operation answers with a JSON array of objects. The whole
body is buffered and parsed at once; there is no streaming mode.

System analytics element:
    {"systemAnalyticsType": "CPU", "timestamps": [...],
     "datapoints": {"Controller-A/Total_Used": [...]}, "averages": {...}}

Data analytics element:
    {"entityType": "DATASET", "entityName": "Pool-A/Project/Dataset",
     "timestamps": [...], "datapoints": {"Read_IOPS": [...]}}

Pool listing element:
    {"name": "Pool-A", "availableSize": 1024, "totalSize": 4096}
"""
import json
import logging
from numbers import Number
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..config.analytics_categories import AnalyticsCategory
from ..core.exceptions import MalformedResponse
from ..schema.models import AnalyticsElement

logger = logging.getLogger(__name__)

TIME_SERIES_CATEGORIES = (AnalyticsCategory.SYSTEM, AnalyticsCategory.DATA)


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


class JsonReader:
    """Decodes raw response bodies into AnalyticsElement lists."""

    @staticmethod
    def read_file(filepath: Union[str, Path]) -> bytes:
        """Read a saved response body from disk."""
        with open(filepath, 'rb') as f:
            return f.read()

    @staticmethod
    def _load(body: Union[bytes, str]) -> Any:
        try:
            return json.loads(body)
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise MalformedResponse(f"Error decoding JSON: {e}") from e

    @classmethod
    def decode(cls, body: Union[bytes, str], category: AnalyticsCategory) -> List[AnalyticsElement]:
        """
        Decode one response body.

        Args:
            body: Raw response body
            category: Category the request was made for

        Returns:
            Elements in response order

        Raises:
            MalformedResponse: If the body is not JSON or not an array of
                objects of the expected shape
        """
        raw = cls._load(body)
        if not isinstance(raw, list):
            raise MalformedResponse(f"Expected a JSON array, got {type(raw).__name__}")

        elements = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict):
                raise MalformedResponse(f"Element {index} is not a JSON object")

            element = AnalyticsElement.from_api_response(item)
            if category is AnalyticsCategory.CAPACITY:
                cls._validate_capacity(element, index)
            elif category in TIME_SERIES_CATEGORIES:
                cls._validate_time_series(element, index)
            elements.append(element)

        logger.debug(f"Decoded {len(elements)} {category.value} elements")
        return elements

    @staticmethod
    def _validate_time_series(element: AnalyticsElement, index: int) -> None:
        # Explicit nulls from the API become empty collections
        element.timestamps = element.timestamps or []
        element.datapoints = element.datapoints or {}
        element.averages = element.averages or {}

        if not isinstance(element.timestamps, list) or not all(
                isinstance(ts, int) and not isinstance(ts, bool) for ts in element.timestamps):
            raise MalformedResponse(f"Element {index}: timestamps must be a list of integers")

        if not isinstance(element.datapoints, dict):
            raise MalformedResponse(f"Element {index}: datapoints must be an object")

        if not isinstance(element.averages, dict):
            raise MalformedResponse(f"Element {index}: averages must be an object")

        for path, samples in element.datapoints.items():
            if not isinstance(samples, list):
                raise MalformedResponse(f"Element {index}: datapoint {path!r} is not a list")
            if len(samples) != len(element.timestamps):
                raise MalformedResponse(
                    f"Element {index}: datapoint {path!r} has {len(samples)} samples "
                    f"for {len(element.timestamps)} timestamps")
            # Missing samples are reported as null and kept as None
            if not all(sample is None or _is_number(sample) for sample in samples):
                raise MalformedResponse(f"Element {index}: datapoint {path!r} has non-numeric samples")

    @staticmethod
    def _validate_capacity(element: AnalyticsElement, index: int) -> None:
        if not isinstance(element.name, str) or not element.name:
            raise MalformedResponse(f"Element {index}: pool name missing")
        for attr in ('available_size', 'total_size'):
            value = getattr(element, attr)
            if value is not None and not _is_number(value):
                raise MalformedResponse(f"Element {index}: {attr} must be numeric")

    @classmethod
    def decode_identity(cls, body: Union[bytes, str]) -> Optional[str]:
        """
        Extract the array's fully-qualified name from a listSystemProperties body.

        Properties come as [{"name": ..., "value": ...}]; a plain object of
        name/value pairs is accepted too.

        Returns:
            The FQDN, or None if the array reports no host name
        """
        raw = cls._load(body)
        properties: Dict[str, Any] = {}
        if isinstance(raw, dict):
            properties = raw
        elif isinstance(raw, list):
            for item in raw:
                if isinstance(item, dict) and 'name' in item:
                    properties[str(item['name'])] = item.get('value')
        else:
            raise MalformedResponse(f"Unexpected system properties payload: {type(raw).__name__}")

        fqdn = properties.get('fqdn')
        if fqdn:
            return str(fqdn)

        hostname = properties.get('hostname')
        if not hostname:
            return None
        domain = properties.get('domainname')
        return f"{hostname}.{domain}" if domain else str(hostname)
