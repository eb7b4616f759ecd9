from __future__ import annotations

import socket
import struct
from errno import EIO, ETIMEDOUT

import pytest

from adapterd.bt_ref.constants import *
from adapterd.core.errors import HardwareCommandFailed
from adapterd.hci.socket_channel import HciSocketSession, _event_filter, build_command_packet, cmd_opcode

SAVED_FILTER = b"\xff" * 16


class FakeHciSocket:
    """One end of a SOCK_SEQPACKET pair standing in for a raw HCI socket."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self.filters: list[bytes] = []
        self.sent: list[bytes] = []

    def fileno(self) -> int:
        return self._sock.fileno()

    def getsockopt(self, level, option, size) -> bytes:
        return SAVED_FILTER

    def setsockopt(self, level, option, value) -> None:
        self.filters.append(bytes(value))

    def send(self, data: bytes) -> int:
        self.sent.append(bytes(data))
        return len(data)

    def recv(self, size: int) -> bytes:
        return self._sock.recv(size)

    def close(self) -> None:
        self._sock.close()


@pytest.fixture
def pair():
    ours, peer = socket.socketpair(socket.AF_UNIX, socket.SOCK_SEQPACKET)
    fake = FakeHciSocket(ours)
    yield HciSocketSession(0, fake), fake, peer
    fake.close()
    peer.close()


def event(code: int, payload: bytes) -> bytes:
    return bytes((HCI_EVENT_PKT, code, len(payload))) + payload


def test_opcode_and_packet() -> None:
    assert cmd_opcode(OGF_HOST_CTL, OCF_WRITE_SCAN_ENABLE) == 0x0C1A
    assert build_command_packet(OGF_HOST_CTL, OCF_WRITE_SCAN_ENABLE, b"\x03") == b"\x01\x1a\x0c\x01\x03"


def test_event_filter_layout() -> None:
    raw = _event_filter(0x0C1A, EVT_CMD_STATUS, EVT_CMD_COMPLETE)
    assert len(raw) == 16
    type_mask, mask0, mask1, opcode = struct.unpack("<IIIH2x", raw)
    assert type_mask == 1 << HCI_EVENT_PKT
    assert mask0 == (1 << EVT_CMD_STATUS) | (1 << EVT_CMD_COMPLETE)
    assert mask1 == 0
    assert opcode == 0x0C1A


def test_command_complete_skips_other_opcodes(pair) -> None:
    session, fake, peer = pair
    peer.send(event(EVT_CMD_COMPLETE, b"\x01\x19\x0c\x00\x02"))
    peer.send(event(EVT_CMD_COMPLETE, b"\x01\x1a\x0c\x00"))

    assert session.send_request(OGF_HOST_CTL, OCF_WRITE_SCAN_ENABLE, b"\x03") == b"\x00"
    assert fake.sent == [b"\x01\x1a\x0c\x01\x03"]
    assert fake.filters[-1] == SAVED_FILTER


def test_helper_reads_scan_enable(pair) -> None:
    session, fake, peer = pair
    peer.send(event(EVT_CMD_COMPLETE, b"\x01\x19\x0c\x00\x03"))
    assert session.read_scan_enable() == SCAN_PAGE | SCAN_INQUIRY


def test_command_status_returned_when_requested(pair) -> None:
    session, fake, peer = pair
    peer.send(event(EVT_CMD_STATUS, b"\x00\x01\x01\x04"))
    session.start_inquiry()
    assert fake.sent[0][4:] == bytes((0x33, 0x8B, 0x9E, 8, 0))


def test_failed_status_while_waiting_for_other_event(pair) -> None:
    session, fake, peer = pair
    peer.send(event(EVT_CMD_STATUS, b"\x0c\x01\x06\x04"))
    with pytest.raises(HardwareCommandFailed) as info:
        session.disconnect(0x0011)
    assert info.value.errno == EIO


def test_timeout(pair) -> None:
    session, fake, peer = pair
    with pytest.raises(HardwareCommandFailed) as info:
        session.send_request(OGF_HOST_CTL, OCF_READ_SCAN_ENABLE, timeout_ms=20)
    assert info.value.errno == ETIMEDOUT
    assert fake.filters[-1] == SAVED_FILTER


def test_non_zero_status_in_complete(pair) -> None:
    session, fake, peer = pair
    peer.send(event(EVT_CMD_COMPLETE, b"\x01\x24\x0c\x12"))
    with pytest.raises(HardwareCommandFailed) as info:
        session.write_class_of_dev(0x000104)
    assert info.value.status == 0x12
