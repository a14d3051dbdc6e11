"""
Utility modules for semfuzz.

- locks: Readers/writer lock used by the in-memory indices
- log: Logging configuration with colored output
"""

from .locks import ReadWriteLock
from .log import config, CustomFormatter, DEBUG, COLOR

__all__ = [
    "ReadWriteLock",
    "config",
    "CustomFormatter",
    "DEBUG",
    "COLOR",
]
