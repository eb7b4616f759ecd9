from __future__ import annotations

import pytest

from adapterd.bt_ref.constants import *
from adapterd.core.errors import InvalidParameterError, RecordNotFoundError
from adapterd.storage.textfile import TextFileStore

from conftest import LOCAL_ADDRESS, REMOTE_ADDRESS

SCOPE = (LOCAL_ADDRESS, STORE_NAMES)


def test_missing_file_reads_empty(store: TextFileStore) -> None:
    assert store.get(SCOPE, REMOTE_ADDRESS) is None
    assert not store.path_for(SCOPE).exists()
    assert store.delete(SCOPE, REMOTE_ADDRESS) is False


def test_set_creates_sorted_file(store: TextFileStore) -> None:
    store.set(SCOPE, "BB:00:00:00:00:00", "second device")
    store.set(SCOPE, "AA:00:00:00:00:00", "first device")
    store.set(SCOPE, "BB:00:00:00:00:00", "renamed")

    assert store.path_for(SCOPE).read_text() == (
        "AA:00:00:00:00:00 first device\n"
        "BB:00:00:00:00:00 renamed\n"
    )


def test_delete(store: TextFileStore) -> None:
    store.set(SCOPE, REMOTE_ADDRESS, "x")
    assert store.delete(SCOPE, REMOTE_ADDRESS) is True
    assert store.get(SCOPE, REMOTE_ADDRESS) is None
    assert store.delete(SCOPE, REMOTE_ADDRESS) is False


@pytest.mark.parametrize("key", ["", "two words", "line\nbreak"])
def test_invalid_keys_rejected(store: TextFileStore, key: str) -> None:
    with pytest.raises(ValueError):
        store.set(SCOPE, key, "value")


def test_multiline_value_rejected(store: TextFileStore) -> None:
    with pytest.raises(InvalidParameterError):
        store.set(SCOPE, REMOTE_ADDRESS, "first\nsecond")
    assert store.get(SCOPE, REMOTE_ADDRESS) is None


def test_for_each_passes_accumulator(store: TextFileStore) -> None:
    store.set(SCOPE, "02", "b")
    store.set(SCOPE, "01", "a")

    def visit(key: str, value: str, acc: list) -> None:
        acc.append(f"{key}={value}")

    assert store.for_each(SCOPE, visit, []) == ["01=a", "02=b"]


def test_scopes_are_separate_files(store: TextFileStore) -> None:
    store.set((LOCAL_ADDRESS, STORE_ALIASES), REMOTE_ADDRESS, "alias")
    store.set(("00:00:00:00:00:01", STORE_ALIASES), REMOTE_ADDRESS, "other")
    assert store.get((LOCAL_ADDRESS, STORE_ALIASES), REMOTE_ADDRESS) == "alias"
    assert store.get(SCOPE, REMOTE_ADDRESS) is None


def test_manufacturer_info_pads_missing_fields(records) -> None:
    records.store.set((LOCAL_ADDRESS, STORE_MANUFACTURERS), REMOTE_ADDRESS, "15")
    assert records.manufacturer_info(REMOTE_ADDRESS) == (15, 0, 0)


def test_manufacturer_info_garbage(records) -> None:
    records.store.set((LOCAL_ADDRESS, STORE_MANUFACTURERS), REMOTE_ADDRESS, "vendor")
    with pytest.raises(RecordNotFoundError):
        records.manufacturer_info(REMOTE_ADDRESS)


def test_pin_length_needs_third_field(records) -> None:
    records.store.set((LOCAL_ADDRESS, STORE_LINKKEYS), REMOTE_ADDRESS, "00112233 0")
    with pytest.raises(RecordNotFoundError):
        records.pin_length(REMOTE_ADDRESS)


@pytest.mark.parametrize("stored", ["00112233 0 256", "00112233 0 -1"])
def test_pin_length_out_of_range(records, stored: str) -> None:
    records.store.set((LOCAL_ADDRESS, STORE_LINKKEYS), REMOTE_ADDRESS, stored)
    with pytest.raises(RecordNotFoundError):
        records.pin_length(REMOTE_ADDRESS)


def test_local_class_format(records) -> None:
    records.write_local_class(bytes((0x0C, 0x01, 0x5A)))
    assert records.store.get((LOCAL_ADDRESS, STORE_CONFIG), "class") == "0x5a010c"


def test_bonded_addresses(records) -> None:
    assert records.bonded_addresses() == []
    records.store.set((LOCAL_ADDRESS, STORE_LINKKEYS), REMOTE_ADDRESS, "00 0 4")
    assert records.bonded_addresses() == [REMOTE_ADDRESS]
    assert records.delete_link_key(REMOTE_ADDRESS) is True
    assert records.bonded_addresses() == []
