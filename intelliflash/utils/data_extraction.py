"""Measurement extraction for IntelliFlash analytics responses.

The array encodes the context of every metric in a slash-delimited datapoint
path, for example:

    NETWORK            Controller-B/IG/mgmt0/Transmit_Mbps
    NETWORK (totals)   Controller-B/Total/Transmit_Mbps
    POOL_PERFORMANCE   pool-a/Data/Write_MBps
    CPU, CACHE_HITS    Controller-A/Total_Used
    data analytics     Read_IOPS

Each path is parsed positionally by a rule chosen from the element's
category. Every (element, path, sample index) triple becomes one record with
exactly one field.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..config.analytics_categories import AnalyticsCategory, CAPACITY_MEASUREMENT
from ..core.exceptions import MalformedResponse, UnknownCategory
from ..schema.models import AnalyticsElement, MeasurementRecord

logger = logging.getLogger(__name__)

# (category tags, field name)
Derivation = Tuple[Dict[str, str], str]
Rule = Callable[[List[str]], Derivation]


def _as_float(sample) -> Optional[float]:
    # A field keeps one type per series, so integral samples are widened too
    return None if sample is None else float(sample)


def _as_int(size) -> Optional[int]:
    return None if size is None else int(size)


def _require(segments: Sequence[str], count: int, rule: str) -> None:
    if len(segments) < count:
        raise MalformedResponse(
            f"{rule} datapoint path {'/'.join(segments)!r} has {len(segments)} segments, "
            f"expected at least {count}")


def pool_performance_rule(segments: List[str]) -> Derivation:
    """pool/disktype/field"""
    _require(segments, 3, 'POOL_PERFORMANCE')
    return {'pool': segments[0], 'disktype': segments[1]}, segments[2]


def network_rule(segments: List[str]) -> Derivation:
    """controller/I*/interface/field for interfaces and interface groups,
    controller/x/y (field x_y) for controller totals."""
    _require(segments, 3, 'NETWORK')
    tags = {'controller': segments[0]}
    if segments[1].startswith('I'):
        _require(segments, 4, 'NETWORK')
        tags['interface'] = segments[2]
        return tags, segments[3]
    return tags, f"{segments[1]}_{segments[2]}"


def controller_rule(segments: List[str]) -> Derivation:
    """controller/field"""
    _require(segments, 2, 'CONTROLLER')
    return {'controller': segments[0]}, segments[1]


SYSTEM_RULES: Dict[str, Rule] = {
    'POOL_PERFORMANCE': pool_performance_rule,
    'NETWORK': network_rule,
    'CPU': controller_rule,
    'CACHE_HITS': controller_rule,
}


def entity_rule(entity_type: str, entity_name: Optional[str]) -> Rule:
    """Data analytics: the entity type doubles as tag key, the path is the field."""
    tag_key = entity_type.lower()

    def rule(segments: List[str]) -> Derivation:
        tags = {tag_key: entity_name} if entity_name else {}
        return tags, segments[0]

    return rule


class MeasurementMapper:
    """Turns decoded elements into MeasurementRecords for one array."""

    def __init__(self, array_name: str, clock: Callable[[], float] = time.time):
        """
        Args:
            array_name: Value of the 'array' tag on every record
            clock: Wall clock used for capacity snapshots, which carry no timestamp
        """
        self.array_name = array_name
        self.clock = clock

    def map(self, elements: Sequence[AnalyticsElement], category: AnalyticsCategory) -> List[MeasurementRecord]:
        """
        Map every element of one response.

        Raises:
            MalformedResponse: If a datapoint path is too short for its rule
            UnknownCategory: If the category carries no measurements
        """
        if category is AnalyticsCategory.CAPACITY:
            return self._map_capacity(elements)
        if category not in (AnalyticsCategory.SYSTEM, AnalyticsCategory.DATA):
            raise UnknownCategory(category)

        records: List[MeasurementRecord] = []
        for element in elements:
            measurement = element.analytics_type or 'UNKNOWN'
            rule = self._select_rule(element, category)
            if rule is None:
                logger.debug(f"No derivation rule for {measurement}; emitting records with the array tag only")

            for path, samples in element.datapoints.items():
                if rule is not None:
                    category_tags, field_name = rule(path.split('/'))
                else:
                    category_tags, field_name = {}, None

                for index, sample in enumerate(samples):
                    tags = dict(category_tags)
                    tags['array'] = self.array_name
                    fields = {field_name: _as_float(sample)} if field_name is not None else {}
                    records.append(MeasurementRecord(
                        name=measurement,
                        tags=tags,
                        fields=fields,
                        timestamp=element.timestamps[index] // 1000,
                    ))

        logger.debug(f"Mapped {len(elements)} {category.value} elements into {len(records)} records for {self.array_name}")
        return records

    @staticmethod
    def _select_rule(element: AnalyticsElement, category: AnalyticsCategory) -> Optional[Rule]:
        if category is AnalyticsCategory.SYSTEM:
            return SYSTEM_RULES.get(element.system_analytics_type or '')
        if element.entity_type:
            return entity_rule(element.entity_type, element.entity_name)
        return None

    def _map_capacity(self, elements: Sequence[AnalyticsElement]) -> List[MeasurementRecord]:
        now = int(self.clock())
        return [
            MeasurementRecord(
                name=CAPACITY_MEASUREMENT,
                tags={'pool': element.name, 'array': self.array_name},
                fields={'available_size': _as_int(element.available_size),
                        'total_size': _as_int(element.total_size)},
                timestamp=now,
            )
            for element in elements
        ]
