"""
Request handlers for the adapter control interface.

Each handler takes the addressed :class:`AdapterContext` and the
:class:`Request`, and returns the reply values as a tuple (empty for methods
without output).  Failures are raised as
:class:`~adapterd.core.errors.AdapterError` subclasses; the dispatcher turns
them into the error reply.

Hardware is reached through a command channel opened for the duration of one
handler call.  Side effects already performed before a later step fails are
left in place: a class persisted to storage stays persisted when the
following controller write fails.
"""

from __future__ import annotations

import re
from errno import ENOTCONN
from typing import List, Tuple

from adapterd.bt_ref.constants import *
from adapterd.bt_ref.lookup import (
    address_to_oui,
    compid_to_str,
    lmp_version_to_str,
    oui_to_company,
)
from adapterd.core.errors import (
    ConnectionNotFoundError,
    HardwareCommandFailed,
    InvalidParameterError,
    NotImplementedFeatureError,
    RecordNotFoundError,
)
from adapterd.core.log import get_logger
from adapterd.dbuslayer.dispatcher import AdapterContext, DispatchEntry, Dispatcher, Request
from adapterd.hci.channel import class_from_bytes, class_to_bytes
from adapterd.hci.device_class import (
    MAJOR_CLASS_LABEL,
    decode_minor_class,
    decode_service_classes,
    encode_minor_class,
)

logger = get_logger(__name__)

__all__ = ["ADAPTER_METHODS", "build_dispatcher"]

_ADDRESS_RX = re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$")

Values = Tuple


def _address_arg(request: Request, index: int = 0) -> str:
    address = request.args[index]
    if not _ADDRESS_RX.match(address):
        raise InvalidParameterError("address", f"malformed Bluetooth address {address!r}")
    return address.upper()


# ---------------------------------------------------------------------------
# Local adapter information
# ---------------------------------------------------------------------------

def get_address(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.handle.address,)


def get_version(ctx: AdapterContext, request: Request) -> Values:
    with ctx.opener.open(ctx.dev_id) as hci:
        ver = hci.read_local_version()
    return (f"Bluetooth {lmp_version_to_str(ver.lmp_ver)}",)


def get_revision(ctx: AdapterContext, request: Request) -> Values:
    with ctx.opener.open(ctx.dev_id) as hci:
        ver = hci.read_local_version()
    return (f"HCI 0x{ver.hci_rev:X}",)


def get_manufacturer(ctx: AdapterContext, request: Request) -> Values:
    with ctx.opener.open(ctx.dev_id) as hci:
        ver = hci.read_local_version()
    return (compid_to_str(ver.manufacturer),)


def get_company(ctx: AdapterContext, request: Request) -> Values:
    company = oui_to_company(address_to_oui(ctx.handle.address))
    if company is None:
        raise RecordNotFoundError("company", ctx.handle.address)
    return (company,)


def get_features(ctx: AdapterContext, request: Request) -> Values:
    return ([],)


# ---------------------------------------------------------------------------
# Scan mode
# ---------------------------------------------------------------------------

def get_mode(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.session.scan_mode,)


def set_mode(ctx: AdapterContext, request: Request) -> Values:
    ctx.session.set_scan_mode(request.args[0], ctx.opener)
    return ()


def get_discoverable_timeout(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.session.discoverable_timeout,)


def set_discoverable_timeout(ctx: AdapterContext, request: Request) -> Values:
    ctx.session.discoverable_timeout = int(request.args[0])
    return ()


def is_connectable(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.session.connectable,)


def is_discoverable(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.session.discoverable,)


# ---------------------------------------------------------------------------
# Class of device
# ---------------------------------------------------------------------------

def get_major_class(ctx: AdapterContext, request: Request) -> Values:
    # Only the computer major class is supported
    return (MAJOR_CLASS_LABEL,)


def get_minor_class(ctx: AdapterContext, request: Request) -> Values:
    with ctx.opener.open(ctx.dev_id) as hci:
        cls = hci.read_class_of_dev()
    try:
        _major, minor = decode_minor_class(cls)
    except InvalidParameterError as e:
        logger.debug(f"{ctx.handle.name}: class 0x{class_from_bytes(cls):06x} not decodable: {e}")
        return ("",)
    return (minor,)


def set_minor_class(ctx: AdapterContext, request: Request) -> Values:
    label = request.args[0]
    # Validate before touching the controller
    encode_minor_class(label)

    with ctx.opener.open(ctx.dev_id) as hci:
        current = hci.read_class_of_dev()
        value = encode_minor_class(label, current)

        # Persist the intended class first; it stays stored if the write fails
        ctx.records.write_local_class(class_to_bytes(value))

        try:
            hci.write_class_of_dev(value)
        except HardwareCommandFailed as e:
            logger.error(f"{ctx.handle.name}: can't write class of device: {e}")
            raise

    ctx.emit(SIG_MINOR_CLASS_CHANGED, label, signature="s")
    return ()


def get_service_classes(ctx: AdapterContext, request: Request) -> Values:
    with ctx.opener.open(ctx.dev_id) as hci:
        cls = hci.read_class_of_dev()
    return (decode_service_classes(cls),)


# ---------------------------------------------------------------------------
# Local name
# ---------------------------------------------------------------------------

def get_name(ctx: AdapterContext, request: Request) -> Values:
    with ctx.opener.open(ctx.dev_id) as hci:
        return (hci.read_local_name(),)


def set_name(ctx: AdapterContext, request: Request) -> Values:
    name = request.args[0]
    if not name:
        raise InvalidParameterError("name", "empty name")

    ctx.records.write_local_name(name)

    with ctx.opener.open(ctx.dev_id) as hci:
        hci.write_local_name(name)
    return ()


# ---------------------------------------------------------------------------
# Remote device records
# ---------------------------------------------------------------------------

def get_remote_version(ctx: AdapterContext, request: Request) -> Values:
    _compid, lmp_ver, _subver = ctx.records.manufacturer_info(_address_arg(request))
    return (f"Bluetooth {lmp_version_to_str(lmp_ver)}",)


def get_remote_revision(ctx: AdapterContext, request: Request) -> Values:
    _compid, _lmp_ver, subver = ctx.records.manufacturer_info(_address_arg(request))
    return (f"HCI 0x{subver:X}",)


def get_remote_manufacturer(ctx: AdapterContext, request: Request) -> Values:
    compid, _lmp_ver, _subver = ctx.records.manufacturer_info(_address_arg(request))
    return (compid_to_str(compid),)


def get_remote_company(ctx: AdapterContext, request: Request) -> Values:
    address = _address_arg(request)
    company = oui_to_company(address_to_oui(address))
    if company is None:
        raise RecordNotFoundError("company", address)
    return (company,)


def get_remote_name(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.records.remote_name(_address_arg(request)),)


def set_remote_name(ctx: AdapterContext, request: Request) -> Values:
    address = _address_arg(request, 0)
    name = request.args[1]
    if not name:
        raise InvalidParameterError("name", "empty name")

    ctx.records.set_remote_name(address, name)
    return ()


def get_remote_alias(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.records.alias(_address_arg(request)),)


def set_remote_alias(ctx: AdapterContext, request: Request) -> Values:
    address = _address_arg(request, 0)
    alias = request.args[1]
    if not alias:
        raise InvalidParameterError("alias", "empty alias")

    ctx.records.set_alias(address, alias)
    ctx.emit(SIG_REMOTE_ALIAS_CHANGED, address, alias, signature="ss")
    return ()


def last_seen(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.records.last_seen(_address_arg(request)),)


def last_used(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.records.last_used(_address_arg(request)),)


# ---------------------------------------------------------------------------
# Bonding
# ---------------------------------------------------------------------------

def create_bonding(ctx: AdapterContext, request: Request) -> Values:
    address = _address_arg(request)

    dev_id = ctx.opener.locate_connection(address, ACL_LINK)
    if dev_id is None or dev_id != ctx.dev_id:
        raise ConnectionNotFoundError(address)

    with ctx.opener.open(ctx.dev_id) as hci:
        conn = hci.get_conn_info(address, ACL_LINK)
        if conn is None:
            raise HardwareCommandFailed.from_errno(ENOTCONN, "Connection info")
        try:
            hci.request_authentication(conn.handle)
        except HardwareCommandFailed as e:
            logger.error(f"{ctx.handle.name}: unable to send authentication request: {e}")
            raise
    return ()


def remove_bonding(ctx: AdapterContext, request: Request) -> Values:
    address = _address_arg(request)

    with ctx.opener.open(ctx.dev_id) as hci:
        ctx.records.delete_link_key(address)

        try:
            hci.delete_stored_link_key(address)
        except HardwareCommandFailed as e:
            logger.debug(f"{ctx.handle.name}: controller link key delete for {address} failed: {e}")

        conn = hci.get_conn_info(address, ACL_LINK)
        if conn is not None:
            try:
                hci.disconnect(conn.handle, HCI_OE_USER_ENDED_CONNECTION)
            except HardwareCommandFailed as e:
                logger.error(f"{ctx.handle.name}: disconnect of {address} failed: {e}")
                raise

    ctx.emit(SIG_BONDING_REMOVED, address, signature="s")
    return ()


def has_bonding(ctx: AdapterContext, request: Request) -> Values:
    address = request.args[0]
    if not _ADDRESS_RX.match(address):
        return (False,)
    return (ctx.records.has_link_key(address.upper()),)


def list_bondings(ctx: AdapterContext, request: Request) -> Values:
    bonded: List[str] = ctx.records.bonded_addresses()
    return (bonded,)


def get_pin_code_length(ctx: AdapterContext, request: Request) -> Values:
    return (ctx.records.pin_length(_address_arg(request)),)


def get_encryption_key_size(ctx: AdapterContext, request: Request) -> Values:
    address = _address_arg(request)
    with ctx.opener.open(ctx.dev_id) as hci:
        conn = hci.get_conn_info(address, ACL_LINK)
        if conn is None:
            raise ConnectionNotFoundError(address)
        return (hci.read_encryption_key_size(conn.handle),)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def discover_devices(ctx: AdapterContext, request: Request) -> Values:
    ctx.session.start_discovery(request.sender or "", ctx.opener)
    return ()


def cancel_discovery(ctx: AdapterContext, request: Request) -> Values:
    ctx.session.cancel_discovery(request.sender or "", ctx.opener)
    return ()


def discover_cache(ctx: AdapterContext, request: Request) -> Values:
    raise NotImplementedFeatureError(request.member)


def discover_service(ctx: AdapterContext, request: Request) -> Values:
    raise NotImplementedFeatureError(request.member)


ADAPTER_METHODS = [
    DispatchEntry("GetAddress", get_address, "", "s"),
    DispatchEntry("GetVersion", get_version, "", "s"),
    DispatchEntry("GetRevision", get_revision, "", "s"),
    DispatchEntry("GetManufacturer", get_manufacturer, "", "s"),
    DispatchEntry("GetCompany", get_company, "", "s"),
    DispatchEntry("GetFeatures", get_features, "", "as"),
    DispatchEntry("GetMode", get_mode, "", "s"),
    DispatchEntry("SetMode", set_mode, "s", ""),
    DispatchEntry("GetDiscoverableTimeout", get_discoverable_timeout, "", "u"),
    DispatchEntry("SetDiscoverableTimeout", set_discoverable_timeout, "u", ""),
    DispatchEntry("IsConnectable", is_connectable, "", "b"),
    DispatchEntry("IsDiscoverable", is_discoverable, "", "b"),
    DispatchEntry("GetMajorClass", get_major_class, "", "s"),
    DispatchEntry("GetMinorClass", get_minor_class, "", "s"),
    DispatchEntry("SetMinorClass", set_minor_class, "s", ""),
    DispatchEntry("GetServiceClasses", get_service_classes, "", "as"),
    DispatchEntry("GetName", get_name, "", "s"),
    DispatchEntry("SetName", set_name, "s", ""),

    DispatchEntry("GetRemoteVersion", get_remote_version, "s", "s"),
    DispatchEntry("GetRemoteRevision", get_remote_revision, "s", "s"),
    DispatchEntry("GetRemoteManufacturer", get_remote_manufacturer, "s", "s"),
    DispatchEntry("GetRemoteCompany", get_remote_company, "s", "s"),
    DispatchEntry("GetRemoteName", get_remote_name, "s", "s"),
    DispatchEntry("SetRemoteName", set_remote_name, "ss", ""),
    DispatchEntry("GetRemoteAlias", get_remote_alias, "s", "s"),
    DispatchEntry("SetRemoteAlias", set_remote_alias, "ss", ""),

    DispatchEntry("LastSeen", last_seen, "s", "s"),
    DispatchEntry("LastUsed", last_used, "s", "s"),

    DispatchEntry("CreateBonding", create_bonding, "s", ""),
    DispatchEntry("RemoveBonding", remove_bonding, "s", ""),
    DispatchEntry("HasBonding", has_bonding, "s", "b"),
    DispatchEntry("ListBondings", list_bondings, "", "as"),
    DispatchEntry("GetPinCodeLength", get_pin_code_length, "s", "y"),
    DispatchEntry("GetEncryptionKeySize", get_encryption_key_size, "s", "y"),

    DispatchEntry("DiscoverDevices", discover_devices, "", ""),
    DispatchEntry("CancelDiscovery", cancel_discovery, "", ""),
    DispatchEntry("DiscoverCache", discover_cache, "", ""),
    DispatchEntry("DiscoverService", discover_service, "ss", ""),
]


def build_dispatcher() -> Dispatcher:
    """Return a dispatcher serving :data:`ADAPTER_METHODS` on the adapter interface."""
    return Dispatcher(ADAPTER_METHODS, ADAPTER_INTERFACE)
