"""
Request dispatcher for the adapter control interface.

The dispatcher owns an ordered routing table of :class:`DispatchEntry`
``(name, handler, signature)`` triples and the set of live adapters keyed by
object path.  For each request it:

1. declines requests for other interfaces so the next dispatcher in the
   host's chain can take them (``dispatch`` returns ``False``);
2. answers ``UnknownPath`` when the path is not a live adapter;
3. scans the whole table: the first entry whose name *and* signature match
   runs, a name match with a different signature only records
   ``WrongSignature`` and the scan continues, no name match at all gives
   ``UnknownMethod``;
4. turns the handler result or exception into exactly one :class:`Reply`
   and hands it to the transport.  Delivery failures are logged, never
   retried.

Handlers run under the addressed adapter's lock, which serialises every
access to its :class:`~adapterd.dbuslayer.session.AdapterSession`.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from adapterd.bt_ref import error_map
from adapterd.bt_ref.constants import ADAPTER_INTERFACE
from adapterd.core.errors import (
    AdapterError,
    UnknownInterfaceError,
    UnknownMethodError,
    UnknownPathError,
    WrongSignatureError,
)
from adapterd.core.log import get_logger, logging__dispatch_log as dispatch_log
from adapterd.dbuslayer.session import AdapterHandle, AdapterSession
from adapterd.dbuslayer.signals import ChangeEmitter
from adapterd.hci.channel import ChannelOpener
from adapterd.storage.records import DeviceRecords

logger = get_logger(__name__)

__all__ = [
    "Request",
    "Reply",
    "DispatchEntry",
    "AdapterContext",
    "Dispatcher",
]


@dataclass(frozen=True)
class Request:
    """An inbound method call, independent of the bus library."""

    interface: str
    member: str
    signature: str
    args: Tuple[Any, ...] = ()
    sender: Optional[str] = None
    path: str = ""
    no_reply: bool = False
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Reply:
    """Exactly one reply per request: either values or an error."""

    request: Request
    values: Tuple[Any, ...] = ()
    signature: str = ""
    error: Optional[AdapterError] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


Handler = Callable[["AdapterContext", Request], Optional[Sequence[Any]]]


@dataclass(frozen=True)
class DispatchEntry:
    name: str
    handler: Handler
    signature: str
    out_signature: str = ""


class AdapterContext:
    """Everything a handler may touch for one adapter."""

    def __init__(
        self,
        session: AdapterSession,
        opener: ChannelOpener,
        records: DeviceRecords,
        emitter: ChangeEmitter,
    ):
        self.session = session
        self.opener = opener
        self.records = records
        self.emitter = emitter
        self.lock = threading.Lock()

    @property
    def handle(self) -> AdapterHandle:
        return self.session.handle

    @property
    def dev_id(self) -> int:
        return self.session.handle.dev_id

    def emit(self, event: str, *args: Any, signature: str = "") -> None:
        """Send a change notification; failures are logged and dropped."""
        try:
            self.emitter.emit(self.handle, event, args, signature)
        except Exception as e:
            logger.warning(f"{self.handle.name}: dropping {event} notification: {e}")


Sender = Callable[[Reply], None]


class Dispatcher:
    """Routes adapter-interface requests to the handler table."""

    def __init__(self, entries: Iterable[DispatchEntry], interface: str = ADAPTER_INTERFACE):
        self.interface = interface
        self._entries: List[DispatchEntry] = list(entries)
        self._adapters: Dict[str, AdapterContext] = {}
        self._adapters_lock = threading.Lock()

    @property
    def entries(self) -> List[DispatchEntry]:
        return list(self._entries)

    # ------------------------------------------------------------------
    # Adapter registry
    # ------------------------------------------------------------------

    def register_adapter(self, context: AdapterContext) -> None:
        with self._adapters_lock:
            self._adapters[context.handle.path] = context
        logger.info(f"Registered adapter {context.handle.name} ({context.handle.address}) at {context.handle.path}")

    def unregister_adapter(self, path: str) -> Optional[AdapterContext]:
        with self._adapters_lock:
            context = self._adapters.pop(path, None)
        if context is not None:
            logger.info(f"Unregistered adapter at {path}")
        return context

    def adapter(self, path: str) -> Optional[AdapterContext]:
        with self._adapters_lock:
            return self._adapters.get(path)

    def paths(self) -> List[str]:
        with self._adapters_lock:
            return sorted(self._adapters)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def lookup(self, name: str, signature: str) -> DispatchEntry:
        """Return the first entry matching *name* and *signature*.

        Every same-named entry is considered before giving up, so an earlier
        overload with another signature never hides a later matching one.
        """
        error: AdapterError = UnknownMethodError(name)
        for entry in self._entries:
            if entry.name != name:
                continue
            if entry.signature == signature:
                return entry
            error = WrongSignatureError(name, signature)
        raise error

    def route(self, request: Request) -> Reply:
        """Return the reply for *request*.

        Raises :class:`UnknownInterfaceError` when the request belongs to
        another interface; every other failure is carried by the reply.
        """
        if request.interface != self.interface:
            raise UnknownInterfaceError(request.interface)

        context = self.adapter(request.path)
        if context is None:
            return Reply(request, error=UnknownPathError(request.path))
        with context.lock:
            return self._invoke(context, request)

    def dispatch(self, request: Request, send: Sender) -> bool:
        """Handle *request* and send its reply; returns False when it is for another interface."""
        dispatch_log(f"Adapter path:{request.path} iface:{request.interface} method:{request.member}")

        try:
            reply = self.route(request)
        except UnknownInterfaceError:
            return False

        if reply.is_error:
            err = reply.error
            dispatch_log(f"  -> {err.dbus_name} [{error_map.categorize(err)}]: {err.message} (0x{err.code:08x})")

        try:
            send(reply)
        except Exception as e:
            logger.error(f"Can't send reply message for {request.member}: {e}")

        return True

    def _invoke(self, context: AdapterContext, request: Request) -> Reply:
        try:
            entry = self.lookup(request.member, request.signature)
        except AdapterError as e:
            return Reply(request, error=e)

        try:
            values = entry.handler(context, request)
        except AdapterError as e:
            return Reply(request, error=e)
        except MemoryError as e:
            return Reply(request, error=error_map.to_adapter_error(e))
        except Exception as e:
            logger.exception(f"{context.handle.name}: handler for {request.member} raised")
            return Reply(request, error=error_map.to_adapter_error(e))

        return Reply(request, tuple(values or ()), entry.out_signature)

    def inquiry_complete(self, path: str) -> Optional[str]:
        """Release discovery ownership after the controller finished an inquiry."""
        context = self.adapter(path)
        if context is None:
            return None
        with context.lock:
            return context.session.discovery_completed()
