"""
Measurement extraction helpers.
"""
from .data_extraction import MeasurementMapper, SYSTEM_RULES, entity_rule

__all__ = ['MeasurementMapper', 'SYSTEM_RULES', 'entity_rule']
