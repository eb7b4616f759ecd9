from __future__ import annotations

import os
import struct
import tempfile
from typing import Any, Callable

# Keep test runs out of the user's log directory; must precede adapterd imports
os.environ.setdefault("ADAPTERD_LOG_DIR", tempfile.mkdtemp(prefix="adapterd-test-logs-"))

import pytest

from adapterd.bt_ref.constants import *
from adapterd.core.errors import HardwareCommandFailed, NoSuchAdapterError
from adapterd.dbuslayer.dispatcher import Reply, Request
from adapterd.dbuslayer.handlers import build_dispatcher
from adapterd.dbuslayer.manager import AdapterManager
from adapterd.dbuslayer.signals import ChangeEmitter
from adapterd.hci.channel import ChannelOpener, ConnectionInfo, HciSession, class_to_bytes
from adapterd.storage.records import DeviceRecords
from adapterd.storage.textfile import TextFileStore

LOCAL_ADDRESS = "00:11:22:33:44:55"
REMOTE_ADDRESS = "AA:BB:CC:DD:EE:FF"
ADAPTER_PATH = "/org/bluez/hci0"


class FakeController:
    """In-memory controller state shared by every session opened on it."""

    def __init__(self, address: str = LOCAL_ADDRESS) -> None:
        self.address = address
        self.scan = SCAN_DISABLED
        self.cls = 0x000100
        self.name = "adapterd test"
        self.version = (4, 0x1234, 6, 0x000A, 0x5678)  # hci_ver, hci_rev, lmp_ver, manufacturer, lmp_subver
        self.connections: dict[str, ConnectionInfo] = {}
        self.key_size = 16
        self.statuses: dict[tuple[int, int], int] = {}
        self.errnos: dict[tuple[int, int], int] = {}
        self.sent: list[tuple[int, int, bytes]] = []
        self.fail_open = False
        self.opened = 0
        self.closed = 0

    def connect(self, address: str, handle: int = 0x002A) -> ConnectionInfo:
        conn = ConnectionInfo(handle, address.upper(), ACL_LINK)
        self.connections[address.upper()] = conn
        return conn

    def commands(self, ogf: int, ocf: int) -> list[bytes]:
        return [params for (g, c, params) in self.sent if (g, c) == (ogf, ocf)]


class FakeHciSession(HciSession):
    """Answers HCI commands from a :class:`FakeController`."""

    def __init__(self, dev_id: int, controller: FakeController) -> None:
        super().__init__(dev_id)
        self.controller = controller

    def send_request(self, ogf, ocf, params=b"", event=None, timeout_ms=100) -> bytes:
        ctl = self.controller
        ctl.sent.append((ogf, ocf, bytes(params)))
        key = (ogf, ocf)
        if key in ctl.errnos:
            raise HardwareCommandFailed.from_errno(ctl.errnos[key], "fake")
        status = ctl.statuses.get(key, 0)
        opcode = ((ogf & 0x3F) << 10) | ocf

        if event == EVT_CMD_STATUS:
            return bytes((status, 1)) + struct.pack("<H", opcode)
        if event == EVT_DISCONN_COMPLETE:
            handle, reason = struct.unpack("<HB", params)
            if not status:
                for address, conn in list(ctl.connections.items()):
                    if conn.handle == handle:
                        del ctl.connections[address]
            return bytes((status,)) + struct.pack("<HB", handle, reason)

        if status:
            return bytes((status,))

        if key == (OGF_HOST_CTL, OCF_READ_SCAN_ENABLE):
            return bytes((0, ctl.scan))
        if key == (OGF_HOST_CTL, OCF_WRITE_SCAN_ENABLE):
            ctl.scan = params[0]
            return b"\x00"
        if key == (OGF_HOST_CTL, OCF_READ_CLASS_OF_DEV):
            return b"\x00" + class_to_bytes(ctl.cls)
        if key == (OGF_HOST_CTL, OCF_WRITE_CLASS_OF_DEV):
            ctl.cls = params[0] | (params[1] << 8) | (params[2] << 16)
            return b"\x00"
        if key == (OGF_HOST_CTL, OCF_READ_LOCAL_NAME):
            return b"\x00" + ctl.name.encode().ljust(HCI_MAX_NAME_LENGTH, b"\x00")
        if key == (OGF_HOST_CTL, OCF_CHANGE_LOCAL_NAME):
            ctl.name = params.split(b"\x00", 1)[0].decode()
            return b"\x00"
        if key == (OGF_HOST_CTL, OCF_DELETE_STORED_LINK_KEY):
            return b"\x00\x01\x00"
        if key == (OGF_INFO_PARAM, OCF_READ_LOCAL_VERSION):
            return b"\x00" + struct.pack("<BHBHH", *ctl.version)
        if key == (OGF_STATUS_PARAM, OCF_READ_ENCRYPTION_KEY_SIZE):
            return b"\x00" + bytes(params[:2]) + bytes((ctl.key_size,))
        return b"\x00"

    def get_conn_info(self, address, link_type=ACL_LINK):
        return self.controller.connections.get(address.upper())

    def device_address(self) -> str:
        return self.controller.address

    def close(self) -> None:
        self.controller.closed += 1


class FakeOpener(ChannelOpener):
    def __init__(self, controllers: dict[int, FakeController]) -> None:
        self.controllers = controllers

    def open(self, dev_id: int) -> FakeHciSession:
        ctl = self.controllers.get(dev_id)
        if ctl is None or ctl.fail_open:
            raise NoSuchAdapterError(dev_id, 19)
        ctl.opened += 1
        return FakeHciSession(dev_id, ctl)

    def device_ids(self, up_only: bool = True) -> list[int]:
        return sorted(self.controllers)


class RecordingEmitter(ChangeEmitter):
    def __init__(self) -> None:
        self.events: list[tuple[str, str, tuple, str]] = []

    def emit(self, handle, event, args, signature="") -> None:
        self.events.append((handle.path, event, tuple(args), signature))


@pytest.fixture
def controller() -> FakeController:
    return FakeController()


@pytest.fixture
def opener(controller: FakeController) -> FakeOpener:
    return FakeOpener({0: controller})


@pytest.fixture
def store(tmp_path) -> TextFileStore:
    return TextFileStore(tmp_path / "storage")


@pytest.fixture
def records(store: TextFileStore) -> DeviceRecords:
    return DeviceRecords(store, LOCAL_ADDRESS)


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def dispatcher(opener, store, emitter):
    dispatcher = build_dispatcher()
    AdapterManager(dispatcher, opener, store, emitter).add_adapter(0)
    return dispatcher


@pytest.fixture
def context(dispatcher):
    return dispatcher.adapter(ADAPTER_PATH)


@pytest.fixture
def call(dispatcher) -> Callable[..., Reply]:
    """Dispatch one adapter-interface request and return its reply."""

    def _call(member: str, *args: Any, signature: str = "", sender: str = ":1.10",
              path: str = ADAPTER_PATH) -> Reply:
        replies: list[Reply] = []
        request = Request(ADAPTER_INTERFACE, member, signature, tuple(args), sender=sender, path=path)
        assert dispatcher.dispatch(request, replies.append)
        assert len(replies) == 1
        return replies[0]

    return _call
