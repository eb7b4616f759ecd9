"""
Command Channel abstraction.

A :class:`ChannelOpener` opens one short-lived :class:`HciSession` per request
against a single controller.  Concrete sessions only provide the transport
primitives (:meth:`HciSession.send_request`, :meth:`HciSession.get_conn_info`,
:meth:`HciSession.device_address`, :meth:`HciSession.close`); the command
helpers below encode parameters and check the controller status byte on top
of them.
"""

from __future__ import annotations

import struct
from errno import EIO
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from adapterd.bt_ref.constants import *
from adapterd.core import config
from adapterd.core.errors import HardwareCommandFailed, NoSuchAdapterError
from adapterd.core.log import logging__hci_log as hci_log

__all__ = [
    "ConnectionInfo",
    "LocalVersion",
    "HciSession",
    "ChannelOpener",
    "str_to_bdaddr",
    "bdaddr_to_str",
    "class_to_bytes",
    "class_from_bytes",
]


def str_to_bdaddr(address: str) -> bytes:
    """``00:11:22:33:44:55`` -> little-endian 6-byte ``bdaddr_t``."""
    parts = address.split(":")
    if len(parts) != 6:
        raise ValueError(f"Invalid Bluetooth address: {address!r}")
    return bytes(int(p, 16) for p in reversed(parts))


def bdaddr_to_str(bdaddr: bytes) -> str:
    return ":".join(f"{b:02X}" for b in reversed(bytes(bdaddr[:6])))


def class_to_bytes(value: int) -> bytes:
    """24-bit class of device -> ``[minor, major, service]`` byte order."""
    return bytes((value & 0xFF, (value >> 8) & 0xFF, (value >> 16) & 0xFF))


def class_from_bytes(cls: bytes) -> int:
    return cls[0] | (cls[1] << 8) | (cls[2] << 16)


@dataclass(frozen=True)
class ConnectionInfo:
    """Active baseband link as reported by the controller."""

    handle: int
    address: str
    link_type: int
    outgoing: bool = False
    state: int = 0
    link_mode: int = 0


@dataclass(frozen=True)
class LocalVersion:
    hci_ver: int
    hci_rev: int
    lmp_ver: int
    manufacturer: int
    lmp_subver: int


class HciSession(ABC):
    """One open command channel to a controller.

    Usable as a context manager; the channel is closed on exit.
    """

    def __init__(self, dev_id: int):
        self.dev_id = dev_id

    def __enter__(self) -> "HciSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def send_request(
        self,
        ogf: int,
        ocf: int,
        params: bytes = b"",
        event: Optional[int] = None,
        timeout_ms: int = config.HCI_REQ_TIMEOUT,
    ) -> bytes:
        """Send one command and return the parameters of its reply event.

        With *event* unset the reply is the Command Complete return
        parameters; ``EVT_CMD_STATUS`` returns the status event payload; any
        other event code returns that event's payload.  Channel errors and
        timeouts raise :class:`HardwareCommandFailed` built from the errno.
        """

    @abstractmethod
    def get_conn_info(self, address: str, link_type: int = ACL_LINK) -> Optional[ConnectionInfo]:
        """Return the active link to *address*, or None when there is none."""

    @abstractmethod
    def device_address(self) -> str:
        """Return the controller's own address."""

    @abstractmethod
    def close(self) -> None:
        ...

    # ------------------------------------------------------------------
    # Command helpers
    # ------------------------------------------------------------------

    def _complete(self, ogf: int, ocf: int, params: bytes, rlen: int, timeout_ms: int, what: str) -> bytes:
        rp = self.send_request(ogf, ocf, params, timeout_ms=timeout_ms)
        if len(rp) < 1:
            hci_log(f"[hci{self.dev_id}] {what}: empty reply")
            raise HardwareCommandFailed.from_errno(EIO, what)
        if rp[0]:
            hci_log(f"[hci{self.dev_id}] {what} failed with status 0x{rp[0]:02x}")
            raise HardwareCommandFailed.from_status(rp[0], what)
        if len(rp) < rlen:
            hci_log(f"[hci{self.dev_id}] {what}: short reply ({len(rp)} < {rlen})")
            raise HardwareCommandFailed.from_errno(EIO, what)
        return rp

    def _status(self, ogf: int, ocf: int, params: bytes, timeout_ms: int, what: str) -> None:
        rp = self.send_request(ogf, ocf, params, event=EVT_CMD_STATUS, timeout_ms=timeout_ms)
        if len(rp) < 4:
            hci_log(f"[hci{self.dev_id}] {what}: malformed command status")
            raise HardwareCommandFailed.from_errno(EIO, what)
        if rp[0]:
            hci_log(f"[hci{self.dev_id}] {what} failed with status 0x{rp[0]:02x}")
            raise HardwareCommandFailed.from_status(rp[0], what)

    def read_scan_enable(self, timeout_ms: int = config.HCI_READ_TIMEOUT) -> int:
        rp = self._complete(OGF_HOST_CTL, OCF_READ_SCAN_ENABLE, b"", 2, timeout_ms, "Read scan enable")
        return rp[1]

    def write_scan_enable(self, mode: int, timeout_ms: int = config.HCI_REQ_TIMEOUT) -> None:
        self._complete(OGF_HOST_CTL, OCF_WRITE_SCAN_ENABLE, bytes((mode,)), 1, timeout_ms, "Write scan enable")

    def read_class_of_dev(self, timeout_ms: int = config.HCI_READ_TIMEOUT) -> bytes:
        rp = self._complete(OGF_HOST_CTL, OCF_READ_CLASS_OF_DEV, b"", 4, timeout_ms, "Read class of device")
        return bytes(rp[1:4])

    def write_class_of_dev(self, value: int, timeout_ms: int = config.HCI_WRITE_TIMEOUT) -> None:
        self._complete(
            OGF_HOST_CTL, OCF_WRITE_CLASS_OF_DEV, class_to_bytes(value), 1, timeout_ms, "Write class of device"
        )

    def start_inquiry(
        self,
        lap: int = GIAC_LAP,
        length: int = INQUIRY_LENGTH,
        num_rsp: int = INQUIRY_NUM_RSP,
        timeout_ms: int = config.HCI_REQ_TIMEOUT,
    ) -> None:
        params = bytes((lap & 0xFF, (lap >> 8) & 0xFF, (lap >> 16) & 0xFF, length, num_rsp))
        self._status(OGF_LINK_CTL, OCF_INQUIRY, params, timeout_ms, "Inquiry")

    def cancel_inquiry(self, timeout_ms: int = config.HCI_REQ_TIMEOUT) -> None:
        self._complete(OGF_LINK_CTL, OCF_INQUIRY_CANCEL, b"", 1, timeout_ms, "Inquiry cancel")

    def request_authentication(self, handle: int, timeout_ms: int = config.HCI_REQ_TIMEOUT) -> None:
        self._status(OGF_LINK_CTL, OCF_AUTH_REQUESTED, struct.pack("<H", handle), timeout_ms, "Authentication request")

    def disconnect(
        self,
        handle: int,
        reason: int = HCI_OE_USER_ENDED_CONNECTION,
        timeout_ms: int = config.HCI_READ_TIMEOUT,
    ) -> None:
        rp = self.send_request(
            OGF_LINK_CTL,
            OCF_DISCONNECT,
            struct.pack("<HB", handle, reason),
            event=EVT_DISCONN_COMPLETE,
            timeout_ms=timeout_ms,
        )
        if len(rp) < 1:
            raise HardwareCommandFailed.from_errno(EIO, "Disconnect")
        if rp[0]:
            hci_log(f"[hci{self.dev_id}] Disconnect failed with status 0x{rp[0]:02x}")
            raise HardwareCommandFailed.from_status(rp[0], "Disconnect")

    def delete_stored_link_key(self, address: str, delete_all: bool = False,
                               timeout_ms: int = config.HCI_READ_TIMEOUT) -> int:
        """Remove a link key held by the controller; returns the number deleted."""
        params = str_to_bdaddr(address) + bytes((1 if delete_all else 0,))
        rp = self._complete(OGF_HOST_CTL, OCF_DELETE_STORED_LINK_KEY, params, 3, timeout_ms, "Delete stored link key")
        return struct.unpack_from("<H", rp, 1)[0]

    def read_local_version(self, timeout_ms: int = config.HCI_READ_TIMEOUT) -> LocalVersion:
        rp = self._complete(OGF_INFO_PARAM, OCF_READ_LOCAL_VERSION, b"", 9, timeout_ms, "Read local version")
        hci_ver, hci_rev, lmp_ver, manufacturer, lmp_subver = struct.unpack_from("<BHBHH", rp, 1)
        return LocalVersion(hci_ver, hci_rev, lmp_ver, manufacturer, lmp_subver)

    def read_local_name(self, timeout_ms: int = config.HCI_READ_TIMEOUT) -> str:
        rp = self._complete(OGF_HOST_CTL, OCF_READ_LOCAL_NAME, b"", 1, timeout_ms, "Read local name")
        raw = bytes(rp[1:1 + HCI_MAX_NAME_LENGTH])
        return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")

    def write_local_name(self, name: str, timeout_ms: int = config.HCI_WRITE_TIMEOUT) -> None:
        raw = name.encode("utf-8")[:HCI_MAX_NAME_LENGTH]
        params = raw.ljust(HCI_MAX_NAME_LENGTH, b"\x00")
        self._complete(OGF_HOST_CTL, OCF_CHANGE_LOCAL_NAME, params, 1, timeout_ms, "Change local name")

    def read_encryption_key_size(self, handle: int, timeout_ms: int = config.HCI_READ_TIMEOUT) -> int:
        rp = self._complete(
            OGF_STATUS_PARAM,
            OCF_READ_ENCRYPTION_KEY_SIZE,
            struct.pack("<H", handle),
            4,
            timeout_ms,
            "Read encryption key size",
        )
        return rp[3]


class ChannelOpener(ABC):
    """Factory for per-request :class:`HciSession` objects."""

    @abstractmethod
    def open(self, dev_id: int) -> HciSession:
        """Open a channel to controller *dev_id*; raises NoSuchAdapterError."""

    @abstractmethod
    def device_ids(self, up_only: bool = True) -> List[int]:
        """Return the indices of the controllers present on the host."""

    def locate_connection(self, address: str, link_type: int = ACL_LINK) -> Optional[int]:
        """Return the index of the controller holding a link to *address*."""
        for dev_id in self.device_ids(up_only=True):
            try:
                with self.open(dev_id) as hci:
                    if hci.get_conn_info(address, link_type) is not None:
                        return dev_id
            except NoSuchAdapterError:
                continue
        return None
