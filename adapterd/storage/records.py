"""
Remote device records kept in the attribute store for one local adapter.

Storage layout per category (all keyed by remote address unless noted)::

    names          <name>
    aliases        <alias>
    manufacturers  <company id> <lmp version> <lmp subversion>
    lastseen       <timestamp>
    lastused       <timestamp>
    linkkeys       <key> <type> <pin length>
    config         name <local name> / class 0xSSMMmm   (keyed by setting)
"""

from __future__ import annotations

from typing import List, Tuple

from adapterd.bt_ref.constants import *
from adapterd.core.errors import RecordNotFoundError
from adapterd.storage.textfile import TextFileStore

__all__ = ["DeviceRecords"]


def _append_key(key: str, _value: str, keys: List[str]) -> None:
    keys.append(key)


class DeviceRecords:
    """Typed accessors over a :class:`TextFileStore` for one adapter address."""

    def __init__(self, store: TextFileStore, local_address: str):
        self.store = store
        self.local_address = local_address

    def _scope(self, category: str) -> Tuple[str, str]:
        return (self.local_address, category)

    def _require(self, category: str, address: str, what: str) -> str:
        value = self.store.get(self._scope(category), address)
        if value is None:
            raise RecordNotFoundError(what, address)
        return value

    # Remote names ------------------------------------------------------

    def remote_name(self, address: str) -> str:
        return self._require(STORE_NAMES, address, "remote name")

    def set_remote_name(self, address: str, name: str) -> None:
        self.store.set(self._scope(STORE_NAMES), address, name)

    def alias(self, address: str) -> str:
        return self._require(STORE_ALIASES, address, "remote alias")

    def set_alias(self, address: str, alias: str) -> None:
        self.store.set(self._scope(STORE_ALIASES), address, alias)

    # Remote version information ---------------------------------------

    def manufacturer_info(self, address: str) -> Tuple[int, int, int]:
        """Return ``(company id, lmp version, lmp subversion)``.

        Older records may hold only the company id; missing fields read as 0.
        """
        raw = self._require(STORE_MANUFACTURERS, address, "remote manufacturer")
        fields = raw.split()
        try:
            numbers = [int(f, 0) for f in fields[:3]]
        except ValueError:
            raise RecordNotFoundError("remote manufacturer", address) from None
        if not numbers:
            raise RecordNotFoundError("remote manufacturer", address)
        numbers += [0] * (3 - len(numbers))
        return numbers[0], numbers[1], numbers[2]

    # Timestamps ---------------------------------------------------------

    def last_seen(self, address: str) -> str:
        return self._require(STORE_LASTSEEN, address, "last seen")

    def last_used(self, address: str) -> str:
        return self._require(STORE_LASTUSED, address, "last used")

    # Link keys ----------------------------------------------------------

    def has_link_key(self, address: str) -> bool:
        return self.store.get(self._scope(STORE_LINKKEYS), address) is not None

    def delete_link_key(self, address: str) -> bool:
        return self.store.delete(self._scope(STORE_LINKKEYS), address)

    def bonded_addresses(self) -> List[str]:
        return self.store.for_each(self._scope(STORE_LINKKEYS), _append_key, [])

    def pin_length(self, address: str) -> int:
        raw = self._require(STORE_LINKKEYS, address, "link key")
        fields = raw.split()
        if len(fields) < 3:
            raise RecordNotFoundError("PIN length", address)
        try:
            length = int(fields[2])
        except ValueError:
            raise RecordNotFoundError("PIN length", address) from None
        if not 0 <= length <= 0xFF:
            raise RecordNotFoundError("PIN length", address)
        return length

    # Local adapter settings ------------------------------------------

    def write_local_class(self, cls: bytes) -> None:
        self.store.set(self._scope(STORE_CONFIG), "class", f"0x{cls[2]:02x}{cls[1]:02x}{cls[0]:02x}")

    def write_local_name(self, name: str) -> None:
        self.store.set(self._scope(STORE_CONFIG), "name", name)
