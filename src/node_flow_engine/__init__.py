"""Node Flow Engine - typed node graphs executed step by step."""

__version__ = "1.0.0"
