"""
D-Bus layer for adapterd.

Session state, request handlers and the dispatcher are bus-library
independent; the dbus-python binding in :mod:`adapterd.dbuslayer.bus` is
loaded on first access.
"""

from .dispatcher import AdapterContext, DispatchEntry, Dispatcher, Reply, Request
from .handlers import ADAPTER_METHODS, build_dispatcher
from .manager import AdapterManager
from .session import AdapterHandle, AdapterSession
from .signals import ChangeEmitter, LogEmitter

__all__ = [
    "AdapterContext",
    "AdapterHandle",
    "AdapterManager",
    "AdapterSession",
    "ADAPTER_METHODS",
    "AdapterBus",
    "ChangeEmitter",
    "DBusEmitter",
    "DispatchEntry",
    "Dispatcher",
    "LogEmitter",
    "Reply",
    "Request",
    "build_dispatcher",
]


# Lazy-load the bus binding so the rest of the package works without dbus-python
def __getattr__(name):
    if name in ("AdapterBus", "DBusEmitter"):
        from . import bus
        return getattr(bus, name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
