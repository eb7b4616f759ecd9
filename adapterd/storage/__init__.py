"""
Persistent attribute storage for adapterd.
"""

from .records import DeviceRecords
from .textfile import TextFileStore

__all__ = ["DeviceRecords", "TextFileStore"]
