"""
Thread-safe accumulator shared by the server tasks of one poll cycle.
"""

import threading
from typing import Any, List

from ..schema.models import MeasurementRecord


class MetricAccumulator:
    """
    Append-only sink for records and errors.

    Server tasks write concurrently; readers should only look at the
    contents after the poll cycle has been joined.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[MeasurementRecord] = []
        self._errors: List[Any] = []

    def add_records(self, records: List[MeasurementRecord]) -> None:
        with self._lock:
            self._records.extend(records)

    def add_error(self, error: Any) -> None:
        with self._lock:
            self._errors.append(error)

    @property
    def records(self) -> List[MeasurementRecord]:
        with self._lock:
            return list(self._records)

    @property
    def errors(self) -> List[Any]:
        with self._lock:
            return list(self._errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
