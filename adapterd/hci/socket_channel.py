"""
Raw HCI socket implementation of the Command Channel (Linux only).

Uses the kernel's ``AF_BLUETOOTH``/``BTPROTO_HCI`` sockets: commands are
written as HCI command packets and replies read back through an event
filter, the way ``hci_send_req`` does it in the C library.  Device and
connection information come from the ``HCIGETDEV*``/``HCIGETCONNINFO``
ioctls.
"""

from __future__ import annotations

import errno
import fcntl
import select
import socket
import struct
import time
from typing import List, Optional

from adapterd.bt_ref.constants import *
from adapterd.core import config
from adapterd.core.errors import HardwareCommandFailed, NoSuchAdapterError
from adapterd.core.log import get_logger, logging__hci_log as hci_log
from adapterd.hci.channel import (
    ChannelOpener,
    ConnectionInfo,
    HciSession,
    bdaddr_to_str,
    str_to_bdaddr,
)

logger = get_logger(__name__)

__all__ = [
    "HciSocketChannel",
    "HciSocketSession",
    "InquiryMonitor",
    "cmd_opcode",
    "build_command_packet",
]

# _IOR('H', nr, int)
HCIGETDEVLIST = 0x800448D2
HCIGETDEVINFO = 0x800448D3
HCIGETCONNINFO = 0x800448D5

HCI_MAX_DEV = 16
HCI_UP = 0

SOL_HCI = getattr(socket, "SOL_HCI", 0)
HCI_FILTER = getattr(socket, "HCI_FILTER", 2)

_FILTER_FMT = "<IIIH2x"
_DEV_INFO_SIZE = 92
_CONN_INFO_REQ_SIZE = 8 + 16


def cmd_opcode(ogf: int, ocf: int) -> int:
    return ((ogf & 0x3F) << 10) | (ocf & 0x03FF)


def build_command_packet(ogf: int, ocf: int, params: bytes = b"") -> bytes:
    return struct.pack("<BHB", HCI_COMMAND_PKT, cmd_opcode(ogf, ocf), len(params)) + bytes(params)


def _event_filter(opcode: int, *events: int) -> bytes:
    event_mask = [0, 0]
    for evt in events:
        event_mask[evt >> 5] |= 1 << (evt & 31)
    return struct.pack(_FILTER_FMT, 1 << HCI_EVENT_PKT, event_mask[0], event_mask[1], opcode)


def _hci_socket() -> socket.socket:
    return socket.socket(socket.AF_BLUETOOTH, socket.SOCK_RAW | socket.SOCK_CLOEXEC, socket.BTPROTO_HCI)


class HciSocketSession(HciSession):
    """A raw HCI socket bound to one controller."""

    def __init__(self, dev_id: int, sock: socket.socket):
        super().__init__(dev_id)
        self._sock = sock

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def _fail(self, err: int, what: str) -> HardwareCommandFailed:
        hci_log(f"[hci{self.dev_id}] {what}: {errno.errorcode.get(err, err)} ({err})")
        return HardwareCommandFailed.from_errno(err, what)

    def send_request(
        self,
        ogf: int,
        ocf: int,
        params: bytes = b"",
        event: Optional[int] = None,
        timeout_ms: int = config.HCI_REQ_TIMEOUT,
    ) -> bytes:
        opcode = cmd_opcode(ogf, ocf)
        what = f"HCI command 0x{ogf:02x}|0x{ocf:04x}"
        wanted = [EVT_CMD_STATUS, EVT_CMD_COMPLETE]
        if event is not None and event not in wanted:
            wanted.append(event)

        try:
            old_filter = self._sock.getsockopt(SOL_HCI, HCI_FILTER, struct.calcsize(_FILTER_FMT))
            self._sock.setsockopt(SOL_HCI, HCI_FILTER, _event_filter(opcode, *wanted))
            self._sock.send(build_command_packet(ogf, ocf, params))
        except OSError as e:
            raise self._fail(e.errno or errno.EIO, what) from e

        try:
            return self._await_reply(opcode, event, timeout_ms, what)
        finally:
            try:
                self._sock.setsockopt(SOL_HCI, HCI_FILTER, old_filter)
            except OSError as e:
                logger.debug(f"Restoring HCI filter failed: {e}")

    def _await_reply(self, opcode: int, event: Optional[int], timeout_ms: int, what: str) -> bytes:
        deadline = time.monotonic() + timeout_ms / 1000.0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise self._fail(errno.ETIMEDOUT, what)
            try:
                ready, _, _ = select.select([self._sock], [], [], remaining)
                if not ready:
                    raise self._fail(errno.ETIMEDOUT, what)
                pkt = self._sock.recv(260)
            except InterruptedError:
                continue
            except OSError as e:
                raise self._fail(e.errno or errno.EIO, what) from e

            if len(pkt) < 3 or pkt[0] != HCI_EVENT_PKT:
                continue
            evt, plen = pkt[1], pkt[2]
            payload = bytes(pkt[3:3 + plen])

            if evt == EVT_CMD_STATUS:
                if len(payload) < 4 or struct.unpack_from("<H", payload, 2)[0] != opcode:
                    continue
                if event == EVT_CMD_STATUS:
                    return payload
                if payload[0]:
                    raise self._fail(errno.EIO, what)
                continue

            if evt == EVT_CMD_COMPLETE:
                if len(payload) < 3 or struct.unpack_from("<H", payload, 1)[0] != opcode:
                    continue
                if event is None or event == EVT_CMD_COMPLETE:
                    return payload[3:]
                continue

            if event is not None and evt == event:
                return payload

    def get_conn_info(self, address: str, link_type: int = ACL_LINK) -> Optional[ConnectionInfo]:
        buf = bytearray(_CONN_INFO_REQ_SIZE)
        buf[0:6] = str_to_bdaddr(address)
        buf[6] = link_type
        try:
            fcntl.ioctl(self._sock.fileno(), HCIGETCONNINFO, buf, True)
        except OSError as e:
            logger.debug(f"hci{self.dev_id}: no {link_type} link to {address}: {e}")
            return None
        handle, = struct.unpack_from("<H", buf, 8)
        peer = bdaddr_to_str(bytes(buf[10:16]))
        ltype, out = buf[16], buf[17]
        state, link_mode = struct.unpack_from("<HI", buf, 18)
        return ConnectionInfo(handle, peer, ltype, bool(out), state, link_mode)

    def device_address(self) -> str:
        buf = bytearray(_DEV_INFO_SIZE)
        struct.pack_into("<H", buf, 0, self.dev_id)
        try:
            fcntl.ioctl(self._sock.fileno(), HCIGETDEVINFO, buf, True)
        except OSError as e:
            raise self._fail(e.errno or errno.EIO, "Read device info") from e
        return bdaddr_to_str(bytes(buf[10:16]))


class HciSocketChannel(ChannelOpener):
    """Opens :class:`HciSocketSession` objects on the local host."""

    def open(self, dev_id: int) -> HciSocketSession:
        try:
            sock = _hci_socket()
        except OSError as e:
            raise NoSuchAdapterError(dev_id, e.errno) from e
        try:
            sock.bind((dev_id,))
        except OSError as e:
            sock.close()
            hci_log(f"Can't open hci{dev_id}: {e}")
            raise NoSuchAdapterError(dev_id, e.errno) from e
        return HciSocketSession(dev_id, sock)

    def device_ids(self, up_only: bool = True) -> List[int]:
        buf = bytearray(4 + HCI_MAX_DEV * 8)
        struct.pack_into("<H", buf, 0, HCI_MAX_DEV)
        try:
            with _hci_socket() as sock:
                fcntl.ioctl(sock.fileno(), HCIGETDEVLIST, buf, True)
        except OSError as e:
            logger.warning(f"Can't list HCI devices: {e}")
            return []
        count, = struct.unpack_from("<H", buf, 0)
        ids = []
        for i in range(min(count, HCI_MAX_DEV)):
            dev_id, dev_opt = struct.unpack_from("<HxxI", buf, 4 + i * 8)
            if up_only and not dev_opt & (1 << HCI_UP):
                continue
            ids.append(dev_id)
        return ids


class InquiryMonitor:
    """Listens for Inquiry Complete events on one controller.

    The socket is non-blocking; poll :meth:`fileno` from the main loop and
    call :meth:`drain` when it becomes readable.
    """

    def __init__(self, dev_id: int):
        self.dev_id = dev_id
        try:
            sock = _hci_socket()
        except OSError as e:
            raise NoSuchAdapterError(dev_id, e.errno) from e
        try:
            sock.bind((dev_id,))
            sock.setsockopt(SOL_HCI, HCI_FILTER, _event_filter(0, EVT_INQUIRY_COMPLETE))
        except OSError as e:
            sock.close()
            raise NoSuchAdapterError(dev_id, e.errno) from e
        sock.setblocking(False)
        self._sock = sock

    def fileno(self) -> int:
        return self._sock.fileno()

    def drain(self) -> int:
        """Read pending packets; returns the number of Inquiry Complete events."""
        count = 0
        while True:
            try:
                pkt = self._sock.recv(260)
            except (BlockingIOError, InterruptedError):
                return count
            if len(pkt) >= 2 and pkt[0] == HCI_EVENT_PKT and pkt[1] == EVT_INQUIRY_COMPLETE:
                hci_log(f"[hci{self.dev_id}] Inquiry complete")
                count += 1

    def close(self) -> None:
        self._sock.close()
