"""Centralized logging configuration for the collector.

Kept apart from configuration parsing so the CLI can set up logging before
anything else is loaded.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class LoggingConfigurator:
    """Root logger setup for the CLI."""

    @staticmethod
    def setup_logging(log_level: str = 'INFO', log_file: Optional[str] = None) -> None:
        """Log to the console and, if log_file is set, to that file as well.

        DEBUG additionally logs every request body sent to the arrays.
        """
        level = getattr(logging, log_level.upper())

        handlers = [logging.StreamHandler()]
        if log_file:
            os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)
            handlers.append(logging.FileHandler(log_file))

        logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)

        # urllib3 logs every connection at DEBUG; only worth seeing on request
        if level > logging.DEBUG:
            logging.getLogger('urllib3').setLevel(logging.WARNING)
