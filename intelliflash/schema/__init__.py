"""Data models for IntelliFlash API responses and collector output."""

from .base_model import BaseModel
from .models import AnalyticsElement, MeasurementRecord, ServerTarget, CollectionError, PollResult

__all__ = ['BaseModel', 'AnalyticsElement', 'MeasurementRecord', 'ServerTarget',
           'CollectionError', 'PollResult']
