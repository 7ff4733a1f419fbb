"""
Multi-writer for the IntelliFlash collector.
Sends every poll cycle to several destinations (e.g., InfluxDB + Prometheus).
"""

import logging
from typing import List, Sequence

from .base import Writer
from ..schema.models import MeasurementRecord

LOG = logging.getLogger(__name__)

class MultiWriter(Writer):
    """
    Composite writer; one failing destination does not stop the others.
    """

    def __init__(self, writers: List[Writer]):
        self.writers = list(writers)
        LOG.info(f"Writing to {len(self.writers)} destinations: {self}")

    def write(self, records: Sequence[MeasurementRecord], loop_iteration: int = 1) -> bool:
        """
        Returns:
            True only if every destination accepted the records
        """
        failed = []
        for writer in self.writers:
            try:
                accepted = writer.write(records, loop_iteration)
            except Exception as e:
                LOG.error(f"{type(writer).__name__} raised during write: {e}", exc_info=True)
                accepted = False
            if not accepted:
                failed.append(type(writer).__name__)

        if failed:
            LOG.error(f"Write failed for {', '.join(failed)} (iteration {loop_iteration})")
        return not failed

    def close(self, timeout_seconds: int = 90) -> None:
        for writer in self.writers:
            try:
                writer.close(timeout_seconds=timeout_seconds)
            except Exception as e:
                LOG.error(f"{type(writer).__name__} raised during close: {e}", exc_info=True)

    def __str__(self) -> str:
        return f"MultiWriter({', '.join(type(w).__name__ for w in self.writers)})"
