"""IntelliFlash storage analytics collector."""

__version__ = '1.0.0'
