"""
Decoding of IntelliFlash API response bodies.
"""
from .json_reader import JsonReader

__all__ = ['JsonReader']
