"""
Error mapping for adapterd.

Maps arbitrary exceptions raised while serving a request onto the typed
:class:`~adapterd.core.errors.AdapterError` hierarchy, and typed errors onto
the error name and text sent on the bus.
"""

from typing import Dict, Tuple, Type

from adapterd.bt_ref.constants import *
from adapterd.core import errors as _errors
from adapterd.core.log import logging__debug_log as debug_log

# Error categories
ERR_CAT_ROUTING = "routing"
ERR_CAT_PERMISSION = "permission"
ERR_CAT_HARDWARE = "hardware"
ERR_CAT_RESOURCE = "resource"
ERR_CAT_STATE = "state"
ERR_CAT_UNKNOWN = "unknown"

ERROR_CATEGORIES: Dict[Type[_errors.AdapterError], str] = {
    _errors.UnknownInterfaceError: ERR_CAT_ROUTING,
    _errors.UnknownPathError: ERR_CAT_ROUTING,
    _errors.UnknownMethodError: ERR_CAT_ROUTING,
    _errors.WrongSignatureError: ERR_CAT_ROUTING,
    _errors.InvalidParameterError: ERR_CAT_ROUTING,
    _errors.NotAuthorizedError: ERR_CAT_PERMISSION,
    _errors.NoSuchAdapterError: ERR_CAT_HARDWARE,
    _errors.HardwareCommandFailed: ERR_CAT_HARDWARE,
    _errors.OutOfMemoryError: ERR_CAT_RESOURCE,
    _errors.RecordNotFoundError: ERR_CAT_RESOURCE,
    _errors.ConnectionNotFoundError: ERR_CAT_STATE,
    _errors.DiscoveryInProgressError: ERR_CAT_STATE,
}


def categorize(error: _errors.AdapterError) -> str:
    """Return the category of *error*, walking its class hierarchy."""
    for cls in type(error).__mro__:
        if cls in ERROR_CATEGORIES:
            return ERROR_CATEGORIES[cls]
    return ERR_CAT_UNKNOWN


def to_adapter_error(error: BaseException) -> _errors.AdapterError:
    """Coerce any exception raised by a handler into an AdapterError."""
    if isinstance(error, _errors.AdapterError):
        return error
    if isinstance(error, MemoryError):
        return _errors.OutOfMemoryError()
    if isinstance(error, OSError) and error.errno:
        return _errors.HardwareCommandFailed.from_errno(error.errno, "System call")
    debug_log(f"Unmapped exception {type(error).__name__}: {error}")
    return _errors.AdapterError(f"{type(error).__name__}: {error}")


def describe(error: _errors.AdapterError) -> Tuple[str, str]:
    """Return the ``(error_name, error_text)`` pair sent on the bus."""
    return error.dbus_name, f"{error.message} (0x{error.code:08x})"
