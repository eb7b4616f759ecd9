"""
Per-adapter session state.

:class:`AdapterSession` holds the mutable state of one managed controller:
the cached scan-enable bits, the discoverable timeout and the identity of the
caller owning an in-progress discovery.  It is only mutated from handlers run
under the dispatcher's per-adapter lock.

Discovery ownership::

    Idle --start_discovery(A)--> Discovering(A)
    Discovering(A) --cancel_discovery(A) | discovery_completed()--> Idle
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from adapterd.bt_ref.constants import *
from adapterd.core import config
from adapterd.core.errors import (
    DiscoveryInProgressError,
    HardwareCommandFailed,
    InvalidParameterError,
    NotAuthorizedError,
)
from adapterd.core.log import get_logger
from adapterd.hci.channel import ChannelOpener

logger = get_logger(__name__)

__all__ = ["AdapterHandle", "AdapterSession", "mode_to_label", "label_to_mode"]

_LABEL_TO_MODE = {
    MODE_OFF: SCAN_DISABLED,
    MODE_CONNECTABLE: SCAN_PAGE,
    MODE_DISCOVERABLE: SCAN_PAGE | SCAN_INQUIRY,
}


def mode_to_label(mode: int) -> str:
    """Map scan-enable bits to a mode label.

    Inquiry scan without page scan is reserved and reported as unknown.
    """
    if mode == SCAN_DISABLED:
        return MODE_OFF
    if mode == SCAN_PAGE:
        return MODE_CONNECTABLE
    if mode == (SCAN_PAGE | SCAN_INQUIRY):
        return MODE_DISCOVERABLE
    return MODE_UNKNOWN


def label_to_mode(label: str) -> int:
    try:
        return _LABEL_TO_MODE[label.lower()]
    except (KeyError, AttributeError):
        raise InvalidParameterError("mode", f"unknown scan mode {label!r}") from None


@dataclass(frozen=True)
class AdapterHandle:
    """Identifies one local controller while it is up."""

    dev_id: int
    address: str

    @property
    def name(self) -> str:
        return f"hci{self.dev_id}"

    @property
    def path(self) -> str:
        return f"{BLUEZ_NAMESPACE}{self.name}"


class AdapterSession:
    """Mutable state for one adapter."""

    def __init__(self, handle: AdapterHandle, discoverable_timeout: int = config.DEFAULT_DISCOVERABLE_TIMEOUT):
        self.handle = handle
        self.mode = SCAN_DISABLED
        self.discoverable_timeout = discoverable_timeout
        self.discovery_owner: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"AdapterSession({self.handle.name}, mode={self.scan_mode}, "
            f"discoverable_timeout={self.discoverable_timeout}, owner={self.discovery_owner!r})"
        )

    # ------------------------------------------------------------------
    # Scan mode
    # ------------------------------------------------------------------

    @property
    def scan_mode(self) -> str:
        return mode_to_label(self.mode)

    @property
    def connectable(self) -> bool:
        return bool(self.mode & SCAN_PAGE)

    @property
    def discoverable(self) -> bool:
        return bool(self.mode & SCAN_INQUIRY)

    def refresh(self, opener: ChannelOpener) -> None:
        """Load the live scan-enable bits from the controller."""
        with opener.open(self.handle.dev_id) as hci:
            self.mode = hci.read_scan_enable()
        logger.debug(f"{self.handle.name}: scan mode is {self.scan_mode}")

    def set_scan_mode(self, label: str, opener: ChannelOpener) -> bool:
        """Apply scan mode *label*; returns True when a command was sent.

        The controller is only written when the requested bits differ from
        the cached ones.
        """
        mode = label_to_mode(label)
        with opener.open(self.handle.dev_id) as hci:
            if mode == self.mode:
                return False
            try:
                hci.write_scan_enable(mode)
            except HardwareCommandFailed as e:
                logger.error(f"{self.handle.name}: setting scan enable failed: {e}")
                raise
        self.mode = mode
        logger.info(f"{self.handle.name}: scan mode set to {self.scan_mode}")
        return True

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @property
    def discovering(self) -> bool:
        return self.discovery_owner is not None

    def start_discovery(self, caller: str, opener: ChannelOpener) -> None:
        if self.discovery_owner is not None:
            raise DiscoveryInProgressError(self.discovery_owner)

        with opener.open(self.handle.dev_id) as hci:
            try:
                hci.start_inquiry(GIAC_LAP, INQUIRY_LENGTH, INQUIRY_NUM_RSP)
            except HardwareCommandFailed as e:
                logger.error(f"{self.handle.name}: unable to start inquiry: {e}")
                raise

        self.discovery_owner = caller
        logger.info(f"{self.handle.name}: discovery started by {caller}")

    def cancel_discovery(self, caller: str, opener: ChannelOpener) -> None:
        if self.discovery_owner is None:
            raise NotAuthorizedError("cancel discovery (no discovery in progress)")
        if self.discovery_owner != caller:
            raise NotAuthorizedError("cancel discovery (not the requestor)")

        with opener.open(self.handle.dev_id) as hci:
            try:
                hci.cancel_inquiry()
            except HardwareCommandFailed as e:
                logger.error(f"{self.handle.name}: cancel inquiry failed: {e}")
                raise

        self.discovery_owner = None
        logger.info(f"{self.handle.name}: discovery cancelled by {caller}")

    def discovery_completed(self) -> Optional[str]:
        """Controller reported inquiry completion; returns the released owner."""
        owner, self.discovery_owner = self.discovery_owner, None
        if owner is not None:
            logger.info(f"{self.handle.name}: discovery owned by {owner} completed")
        return owner
