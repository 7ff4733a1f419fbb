"""DataSource implementations and request plumbing for the IntelliFlash API."""

from .base import DataSource, CollectionResult, SystemInfo
from .live_api import LiveAPIDataSource, IntelliflashAPIClient, build_session
from .request_builder import AnalyticsRequest, build_requests

__all__ = ['DataSource', 'CollectionResult', 'SystemInfo', 'LiveAPIDataSource',
           'IntelliflashAPIClient', 'build_session', 'AnalyticsRequest', 'build_requests']
