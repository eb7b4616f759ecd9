"""Core error classes for adapterd.

Every failure a request handler can report is an :class:`AdapterError`
subclass.  ``code`` is the 32-bit wire code carried in the error reply and
``dbus_name`` the error name it is sent under.
"""

from __future__ import annotations

from typing import Optional

from adapterd.bt_ref.constants import *


class AdapterError(Exception):
    """Base exception for all request failures."""

    dbus_name = ERROR_INTERFACE + ".Failed"
    default_code = BLUEZ_EDBUS_OFFSET

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = self.default_code if code is None else code

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


class UnknownInterfaceError(AdapterError):
    """The request is addressed to an interface this dispatcher does not serve."""

    dbus_name = "org.freedesktop.DBus.Error.UnknownInterface"

    def __init__(self, interface: str):
        super().__init__(f"Unknown interface: {interface}")
        self.interface = interface


class UnknownPathError(AdapterError):
    """The request path does not resolve to a live adapter."""

    dbus_name = ERROR_INTERFACE + ".UnknownPath"
    default_code = BLUEZ_EDBUS_UNKNOWN_PATH

    def __init__(self, path: str):
        super().__init__(f"Unknown path: {path}")
        self.path = path


class UnknownMethodError(AdapterError):
    dbus_name = ERROR_INTERFACE + ".UnknownMethod"
    default_code = BLUEZ_EDBUS_UNKNOWN_METHOD

    def __init__(self, method: str):
        super().__init__(f"Unknown method: {method}")
        self.method = method


class WrongSignatureError(AdapterError):
    dbus_name = ERROR_INTERFACE + ".WrongSignature"
    default_code = BLUEZ_EDBUS_WRONG_SIGNATURE

    def __init__(self, method: str, signature: str):
        super().__init__(f"Wrong signature '{signature}' for method {method}")
        self.method = method
        self.signature = signature


class InvalidParameterError(AdapterError):
    dbus_name = ERROR_INTERFACE + ".InvalidParameter"
    default_code = BLUEZ_EDBUS_WRONG_PARAM

    def __init__(self, argument: str, reason: Optional[str] = None):
        message = f"Invalid parameter: {argument}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.argument = argument
        self.reason = reason


class UnsupportedMajorClassError(InvalidParameterError):
    """Raised when a class of device is not in the computer major class."""

    def __init__(self, major: int):
        super().__init__("major class", f"unsupported major class 0x{major:02x}")
        self.major = major


class UnknownMinorClassError(InvalidParameterError):
    """Raised when a computer minor class index has no label."""

    def __init__(self, minor: int):
        super().__init__("minor class", f"unknown computer minor class {minor}")
        self.minor = minor


class NoSuchAdapterError(AdapterError):
    """Raised when a command channel to the controller cannot be opened."""

    dbus_name = ERROR_INTERFACE + ".NoSuchAdapter"
    default_code = BLUEZ_ESYSTEM_OFFSET

    def __init__(self, dev_id: int, errno: Optional[int] = None):
        msg = f"No such adapter: hci{dev_id}"
        code = None if errno is None else BLUEZ_ESYSTEM_OFFSET | errno
        super().__init__(msg, code)
        self.dev_id = dev_id
        self.errno = errno


class HardwareCommandFailed(AdapterError):
    """A controller command failed at the channel level or with a non-zero status."""

    dbus_name = ERROR_INTERFACE + ".Failed"

    def __init__(self, message: str, code: int):
        super().__init__(message, code)

    @classmethod
    def from_status(cls, status: int, operation: str = "HCI command") -> "HardwareCommandFailed":
        return cls(f"{operation} failed with status 0x{status:02x}", BLUEZ_EBT_OFFSET | status)

    @classmethod
    def from_errno(cls, errno: int, operation: str = "HCI command") -> "HardwareCommandFailed":
        return cls(f"{operation} failed (errno {errno})", BLUEZ_ESYSTEM_OFFSET | errno)

    @property
    def status(self) -> Optional[int]:
        """Controller status byte, or None for channel (errno) failures."""
        if self.code & BLUEZ_ESYSTEM_OFFSET:
            return None
        return self.code & 0xFF

    @property
    def errno(self) -> Optional[int]:
        if self.code & BLUEZ_ESYSTEM_OFFSET:
            return self.code & 0xFFFF
        return None


class OutOfMemoryError(AdapterError):
    dbus_name = ERROR_INTERFACE + ".OutOfMemory"
    default_code = BLUEZ_EDBUS_NO_MEM

    def __init__(self):
        super().__init__("Out of memory")


class NotAuthorizedError(AdapterError):
    """Raised when the caller does not own the operation it tries to change."""

    dbus_name = ERROR_INTERFACE + ".NotAuthorized"

    def __init__(self, operation: str = "operation"):
        super().__init__(f"Not authorized: {operation}")
        self.operation = operation


class DiscoveryInProgressError(AdapterError):
    dbus_name = ERROR_INTERFACE + ".DiscoverInProgress"

    def __init__(self, owner: Optional[str] = None):
        super().__init__("Discover in progress")
        self.owner = owner


class ConnectionNotFoundError(AdapterError):
    dbus_name = ERROR_INTERFACE + ".ConnectionNotFound"
    default_code = BLUEZ_EDBUS_CONN_NOT_FOUND

    def __init__(self, address: str):
        super().__init__(f"Connection not found: {address}")
        self.address = address


class RecordNotFoundError(AdapterError):
    dbus_name = ERROR_INTERFACE + ".RecordNotFound"
    default_code = BLUEZ_EDBUS_RECORD_NOT_FOUND

    def __init__(self, what: str, key: Optional[str] = None):
        msg = f"Record not found: {what}"
        if key:
            msg += f" for {key}"
        super().__init__(msg)
        self.what = what
        self.key = key


class NotImplementedFeatureError(AdapterError):
    dbus_name = ERROR_INTERFACE + ".NotImplemented"
    default_code = BLUEZ_EDBUS_NOT_IMPLEMENTED

    def __init__(self, method: str):
        super().__init__(f"Not implemented: {method}")
        self.method = method


__all__ = [
    "AdapterError",
    "UnknownInterfaceError",
    "UnknownPathError",
    "UnknownMethodError",
    "WrongSignatureError",
    "InvalidParameterError",
    "UnsupportedMajorClassError",
    "UnknownMinorClassError",
    "NoSuchAdapterError",
    "HardwareCommandFailed",
    "OutOfMemoryError",
    "NotAuthorizedError",
    "DiscoveryInProgressError",
    "ConnectionNotFoundError",
    "RecordNotFoundError",
    "NotImplementedFeatureError",
]
