"""Adapter registry bookkeeping.

:class:`AdapterManager` turns controller indices into registered
:class:`~adapterd.dbuslayer.dispatcher.AdapterContext` objects: it reads the
controller address, loads the live scan mode and wires the per-adapter
record accessor and change emitter.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from adapterd.core import config
from adapterd.core.errors import AdapterError
from adapterd.core.log import print_and_log, LOG__GENERAL, LOG__DEBUG
from adapterd.dbuslayer.dispatcher import AdapterContext, Dispatcher
from adapterd.dbuslayer.session import AdapterHandle, AdapterSession
from adapterd.dbuslayer.signals import ChangeEmitter, LogEmitter
from adapterd.hci.channel import ChannelOpener
from adapterd.storage.records import DeviceRecords
from adapterd.storage.textfile import TextFileStore

__all__ = ["AdapterManager"]


class AdapterManager:
    """Registers local controllers with a dispatcher."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        opener: ChannelOpener,
        store: TextFileStore,
        emitter: Optional[ChangeEmitter] = None,
        discoverable_timeout: int = config.DEFAULT_DISCOVERABLE_TIMEOUT,
    ):
        self.dispatcher = dispatcher
        self.opener = opener
        self.store = store
        self.emitter = emitter or LogEmitter()
        self.discoverable_timeout = discoverable_timeout
        self._contexts: Dict[int, AdapterContext] = {}

    def add_adapter(self, dev_id: int) -> AdapterContext:
        """Register controller *dev_id*; raises AdapterError when it cannot be opened."""
        if dev_id in self._contexts:
            return self._contexts[dev_id]

        with self.opener.open(dev_id) as hci:
            address = hci.device_address()

        handle = AdapterHandle(dev_id, address)
        session = AdapterSession(handle, self.discoverable_timeout)
        try:
            session.refresh(self.opener)
        except AdapterError as e:
            print_and_log(f"[!] {handle.name}: can't read scan mode, assuming off: {e}", LOG__DEBUG)

        context = AdapterContext(session, self.opener, DeviceRecords(self.store, address), self.emitter)
        self._contexts[dev_id] = context
        self.dispatcher.register_adapter(context)
        return context

    def remove_adapter(self, dev_id: int) -> Optional[AdapterContext]:
        context = self._contexts.pop(dev_id, None)
        if context is not None:
            self.dispatcher.unregister_adapter(context.handle.path)
        return context

    def add_adapters(self, dev_ids: Iterable[int]) -> List[AdapterContext]:
        """Register every controller in *dev_ids* that can be opened."""
        added = []
        for dev_id in dev_ids:
            try:
                added.append(self.add_adapter(dev_id))
            except AdapterError as e:
                print_and_log(f"[-] Skipping hci{dev_id}: {e}", LOG__GENERAL)
        return added

    def contexts(self) -> List[AdapterContext]:
        return [self._contexts[k] for k in sorted(self._contexts)]
