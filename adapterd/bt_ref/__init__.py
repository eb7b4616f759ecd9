"""
Bluetooth reference data and constants.

Only *constants* is imported eagerly; *error_map* and *lookup* depend on the
core package and are imported by their users.
"""

from . import constants  # noqa: F401

__all__ = ["constants", "error_map", "lookup"]
