"""
Base writer interface for the IntelliFlash collector.
"""

import logging
from abc import ABC, abstractmethod
from typing import Sequence

from ..schema.models import MeasurementRecord

# Initialize logger
LOG = logging.getLogger(__name__)

class Writer(ABC):
    """
    Base class for all writers.
    """

    @abstractmethod
    def write(self, records: Sequence[MeasurementRecord], loop_iteration: int = 1) -> bool:
        """
        Write records to the destination.

        Args:
            records: Records produced by one poll cycle
            loop_iteration: Current iteration number

        Returns:
            True if write was successful, False otherwise
        """
        pass

    def close(self, timeout_seconds: int = 90) -> None:
        """
        Optional method to close the writer and clean up resources.
        Default implementation does nothing - override in subclasses that need cleanup.
        """
        pass
