from __future__ import annotations

import pytest

dbus = pytest.importorskip("dbus")
import dbus.lowlevel  # noqa: E402

from adapterd.bt_ref.constants import *  # noqa: E402
from adapterd.dbuslayer import bus as bus_mod  # noqa: E402
from adapterd.dbuslayer.session import AdapterHandle  # noqa: E402

from conftest import ADAPTER_PATH, LOCAL_ADDRESS  # noqa: E402


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list = []
        self.filters: list = []

    def send_message(self, message) -> int:
        self.sent.append(message)
        return len(self.sent)

    def add_message_filter(self, func) -> None:
        self.filters.append(func)

    def remove_message_filter(self, func) -> None:
        self.filters.remove(func)


class FakeReturn:
    def __init__(self, call) -> None:
        self.call = call
        self.values: tuple = ()
        self.signature = ""

    def append(self, *values, signature="") -> None:
        self.values = values
        self.signature = signature


class FakeError:
    def __init__(self, call, name, text) -> None:
        self.call = call
        self.name = name
        self.text = text


@pytest.fixture
def served(dispatcher, monkeypatch):
    monkeypatch.setattr(dbus.lowlevel, "MethodReturnMessage", FakeReturn)
    monkeypatch.setattr(dbus.lowlevel, "ErrorMessage", FakeError)
    connection = FakeConnection()
    adapter_bus = bus_mod.AdapterBus(connection, dispatcher)
    adapter_bus.attach()
    return adapter_bus, connection


def method_call(member: str, *args, signature: str = "", interface: str = ADAPTER_INTERFACE,
                path: str = ADAPTER_PATH):
    message = dbus.lowlevel.MethodCallMessage(BLUEZ_SERVICE_NAME, path, interface, member)
    if args:
        message.append(*args, signature=signature)
    return message


def test_request_from_message() -> None:
    request = bus_mod.request_from_message(method_call("SetMode", "connectable", signature="s"))
    assert request.interface == ADAPTER_INTERFACE
    assert request.member == "SetMode"
    assert request.signature == "s"
    assert request.args == ("connectable",)
    assert request.path == ADAPTER_PATH


def test_filter_installed_once(served) -> None:
    adapter_bus, connection = served
    adapter_bus.attach()
    assert len(connection.filters) == 1
    adapter_bus.detach()
    assert connection.filters == []


def test_method_reply(served) -> None:
    adapter_bus, connection = served
    result = connection.filters[0](connection, method_call("GetAddress"))

    assert result == dbus.lowlevel.HANDLER_RESULT_HANDLED
    (reply,) = connection.sent
    assert isinstance(reply, FakeReturn)
    assert reply.values == (LOCAL_ADDRESS,)
    assert reply.signature == "s"


def test_error_reply(served) -> None:
    adapter_bus, connection = served
    connection.filters[0](connection, method_call("SetMode", "sideways", signature="s"))
    (reply,) = connection.sent
    assert isinstance(reply, FakeError)
    assert reply.name == "org.bluez.Error.InvalidParameter"
    assert reply.text.endswith("(0x00010003)")


def test_other_interface_left_for_next_filter(served) -> None:
    adapter_bus, connection = served
    result = connection.filters[0](connection, method_call("ListAdapters", interface="org.bluez.Manager"))
    assert result == dbus.lowlevel.HANDLER_RESULT_NOT_YET_HANDLED
    assert connection.sent == []


def test_introspect(served) -> None:
    adapter_bus, connection = served
    connection.filters[0](connection, method_call("Introspect", interface=INTROSPECT_INTERFACE))
    (reply,) = connection.sent
    assert reply.signature == "s"
    assert '<method name="ListBondings">' in reply.values[0]


def test_signal_emitter() -> None:
    connection = FakeConnection()
    emitter = bus_mod.DBusEmitter(connection)
    emitter.emit(AdapterHandle(0, LOCAL_ADDRESS), SIG_REMOTE_ALIAS_CHANGED, ("AA:BB:CC:DD:EE:FF", "Phone"), "ss")

    (signal,) = connection.sent
    assert isinstance(signal, dbus.lowlevel.SignalMessage)
    assert signal.get_path() == ADAPTER_PATH
    assert signal.get_member() == SIG_REMOTE_ALIAS_CHANGED
    assert signal.get_args_list() == ["AA:BB:CC:DD:EE:FF", "Phone"]
