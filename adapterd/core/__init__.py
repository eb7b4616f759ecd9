"""
Core package initialisation for adapterd.

Deliberately kept lightweight: configuration, logging and the error
hierarchy only.
"""

from adapterd.core.errors import (
    AdapterError,
    HardwareCommandFailed,
    NoSuchAdapterError,
)

__all__ = [
    "AdapterError",
    "HardwareCommandFailed",
    "NoSuchAdapterError",
]
