"""
dbus-python binding for the adapter dispatcher.

:class:`AdapterBus` installs a message filter on a bus connection.  Method
calls are converted into :class:`~adapterd.dbuslayer.dispatcher.Request`
objects and handed to the dispatcher; the resulting
:class:`~adapterd.dbuslayer.dispatcher.Reply` is marshalled back into a
``MethodReturnMessage`` or ``ErrorMessage``.  Calls the dispatcher declines
(other interfaces) are left for the next filter on the connection.

:class:`DBusEmitter` publishes adapter change notifications as signals.
"""

from __future__ import annotations

from typing import Any, Sequence

import dbus
import dbus.lowlevel

from adapterd.bt_ref import error_map
from adapterd.bt_ref.constants import *
from adapterd.core.log import get_logger
from adapterd.dbuslayer.dispatcher import Dispatcher, Reply, Request
from adapterd.dbuslayer.introspect import introspect_xml
from adapterd.dbuslayer.session import AdapterHandle
from adapterd.dbuslayer.signals import ChangeEmitter

logger = get_logger(__name__)

__all__ = ["AdapterBus", "DBusEmitter", "request_from_message", "reply_to_message"]


def request_from_message(message: "dbus.lowlevel.MethodCallMessage") -> Request:
    """Build a :class:`Request` from an inbound method call."""
    return Request(
        interface=message.get_interface() or "",
        member=message.get_member() or "",
        signature=message.get_signature() or "",
        args=tuple(message.get_args_list()),
        sender=message.get_sender(),
        path=message.get_path() or "",
        no_reply=bool(message.get_no_reply()),
        raw=message,
    )


def reply_to_message(reply: Reply) -> "dbus.lowlevel.Message":
    """Marshal *reply* as a response to the call it answers."""
    call = reply.request.raw
    if reply.is_error:
        name, text = error_map.describe(reply.error)
        return dbus.lowlevel.ErrorMessage(call, name, text)

    message = dbus.lowlevel.MethodReturnMessage(call)
    if reply.values:
        message.append(*reply.values, signature=reply.signature)
    return message


class AdapterBus:
    """Serves a :class:`Dispatcher` on one bus connection."""

    def __init__(self, connection: "dbus.connection.Connection", dispatcher: Dispatcher):
        self.connection = connection
        self.dispatcher = dispatcher
        self._attached = False

    def attach(self) -> None:
        if not self._attached:
            self.connection.add_message_filter(self._filter)
            self._attached = True
            logger.debug("Adapter message filter installed")

    def detach(self) -> None:
        if self._attached:
            self.connection.remove_message_filter(self._filter)
            self._attached = False

    def send(self, reply: Reply) -> None:
        # The reply is always built; the bus drops it when no reply is expected
        message = reply_to_message(reply)
        self.connection.send_message(message)

    def _filter(self, connection, message) -> int:
        if not isinstance(message, dbus.lowlevel.MethodCallMessage):
            return dbus.lowlevel.HANDLER_RESULT_NOT_YET_HANDLED

        if (
            message.get_interface() == INTROSPECT_INTERFACE
            and message.get_member() == "Introspect"
            and self.dispatcher.adapter(message.get_path() or "") is not None
        ):
            return self._introspect(message)

        request = request_from_message(message)
        if self.dispatcher.dispatch(request, self.send):
            return dbus.lowlevel.HANDLER_RESULT_HANDLED
        return dbus.lowlevel.HANDLER_RESULT_NOT_YET_HANDLED

    def _introspect(self, message) -> int:
        reply = dbus.lowlevel.MethodReturnMessage(message)
        reply.append(introspect_xml(self.dispatcher.entries, self.dispatcher.interface), signature="s")
        try:
            self.connection.send_message(reply)
        except Exception as e:
            logger.error(f"Can't send introspection reply: {e}")
        return dbus.lowlevel.HANDLER_RESULT_HANDLED


class DBusEmitter(ChangeEmitter):
    """Emits adapter change notifications as signals on the adapter path."""

    def __init__(self, connection: "dbus.connection.Connection", interface: str = ADAPTER_INTERFACE):
        self.connection = connection
        self.interface = interface

    def emit(self, handle: AdapterHandle, event: str, args: Sequence[Any], signature: str = "") -> None:
        signal = dbus.lowlevel.SignalMessage(handle.path, self.interface, event)
        if args:
            signal.append(*args, signature=signature)
        self.connection.send_message(signal)
        logger.debug(f"{handle.path}: emitted {event}{tuple(args)!r}")
