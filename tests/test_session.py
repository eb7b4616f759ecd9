from __future__ import annotations

import pytest

from adapterd.bt_ref.constants import *
from adapterd.core.errors import (
    DiscoveryInProgressError,
    HardwareCommandFailed,
    InvalidParameterError,
    NoSuchAdapterError,
    NotAuthorizedError,
)
from adapterd.dbuslayer.session import AdapterHandle, AdapterSession, label_to_mode, mode_to_label

from conftest import LOCAL_ADDRESS


@pytest.fixture
def session() -> AdapterSession:
    return AdapterSession(AdapterHandle(0, LOCAL_ADDRESS))


def scan_writes(controller) -> list[bytes]:
    return controller.commands(OGF_HOST_CTL, OCF_WRITE_SCAN_ENABLE)


def test_handle_path() -> None:
    handle = AdapterHandle(1, LOCAL_ADDRESS)
    assert handle.name == "hci1"
    assert handle.path == "/org/bluez/hci1"


@pytest.mark.parametrize(
    "mode, label",
    [
        (SCAN_DISABLED, MODE_OFF),
        (SCAN_PAGE, MODE_CONNECTABLE),
        (SCAN_PAGE | SCAN_INQUIRY, MODE_DISCOVERABLE),
        (SCAN_INQUIRY, MODE_UNKNOWN),
    ],
)
def test_mode_labels(mode: int, label: str) -> None:
    assert mode_to_label(mode) == label


def test_unknown_mode_label_rejected() -> None:
    with pytest.raises(InvalidParameterError):
        label_to_mode("invisible")


def test_refresh_reads_live_scan_mode(session, controller, opener) -> None:
    controller.scan = SCAN_PAGE
    session.refresh(opener)
    assert session.scan_mode == MODE_CONNECTABLE
    assert session.connectable and not session.discoverable


def test_set_scan_mode_writes_once(session, controller, opener) -> None:
    session.mode = SCAN_PAGE

    assert session.set_scan_mode("discoverable", opener) is True
    assert scan_writes(controller) == [bytes((SCAN_PAGE | SCAN_INQUIRY,))]
    assert session.scan_mode == MODE_DISCOVERABLE

    assert session.set_scan_mode("discoverable", opener) is False
    assert len(scan_writes(controller)) == 1


def test_set_scan_mode_failure_keeps_cache(session, controller, opener) -> None:
    controller.statuses[(OGF_HOST_CTL, OCF_WRITE_SCAN_ENABLE)] = 0x12
    with pytest.raises(HardwareCommandFailed) as info:
        session.set_scan_mode("connectable", opener)
    assert info.value.status == 0x12
    assert session.scan_mode == MODE_OFF


def test_set_scan_mode_open_failure(session, controller, opener) -> None:
    controller.fail_open = True
    with pytest.raises(NoSuchAdapterError):
        session.set_scan_mode("connectable", opener)


def test_discovery_ownership(session, controller, opener) -> None:
    session.start_discovery(":1.5", opener)
    assert session.discovery_owner == ":1.5"

    with pytest.raises(NotAuthorizedError):
        session.cancel_discovery(":1.6", opener)
    assert session.discovery_owner == ":1.5"

    session.cancel_discovery(":1.5", opener)
    assert session.discovery_owner is None
    assert len(controller.commands(OGF_LINK_CTL, OCF_INQUIRY_CANCEL)) == 1


def test_inquiry_parameters(session, controller, opener) -> None:
    session.start_discovery(":1.5", opener)
    assert controller.commands(OGF_LINK_CTL, OCF_INQUIRY) == [bytes((0x33, 0x8B, 0x9E, 8, 0))]


def test_second_start_rejected_even_for_owner(session, opener) -> None:
    session.start_discovery(":1.5", opener)
    with pytest.raises(DiscoveryInProgressError):
        session.start_discovery(":1.5", opener)


def test_cancel_when_idle_not_authorized(session, opener) -> None:
    with pytest.raises(NotAuthorizedError):
        session.cancel_discovery(":1.5", opener)


def test_failed_inquiry_stays_idle(session, controller, opener) -> None:
    controller.statuses[(OGF_LINK_CTL, OCF_INQUIRY)] = 0x0C
    with pytest.raises(HardwareCommandFailed):
        session.start_discovery(":1.5", opener)
    assert not session.discovering


def test_failed_cancel_keeps_owner(session, controller, opener) -> None:
    session.start_discovery(":1.5", opener)
    controller.statuses[(OGF_LINK_CTL, OCF_INQUIRY_CANCEL)] = 0x0C
    with pytest.raises(HardwareCommandFailed):
        session.cancel_discovery(":1.5", opener)
    assert session.discovery_owner == ":1.5"


def test_discovery_completed_releases_owner(session, opener) -> None:
    session.start_discovery(":1.5", opener)
    assert session.discovery_completed() == ":1.5"
    assert session.discovery_completed() is None
    session.start_discovery(":1.7", opener)
