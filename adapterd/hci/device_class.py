"""adapterd.hci.device_class – class of device codec.

A class of device is a 24-bit value laid out as::

    bits 13-23  service class bitset
    bits  8-12  major device class
    bits  2-7   minor device class
    bits  0-1   format type

Only the *computer* major class is interpreted; everything else decodes as
unsupported and encoding always selects it.
"""

from __future__ import annotations

from typing import List, Tuple

from adapterd.bt_ref.constants import (
    COMPUTER_MINOR_CLASSES,
    MAJOR_CLASS_COMPUTER,
    MAJOR_CLASS_MASK,
    SERVICE_CLASSES,
)
from adapterd.core.errors import (
    InvalidParameterError,
    UnknownMinorClassError,
    UnsupportedMajorClassError,
)

__all__ = [
    "MAJOR_CLASS_LABEL",
    "SERVICE_CLASS_MASK",
    "decode_minor_class",
    "encode_minor_class",
    "decode_service_classes",
    "minor_class_index",
]

MAJOR_CLASS_LABEL = "computer"

# Bits 13-23: the top three bits of the middle byte plus the whole top byte
SERVICE_CLASS_MASK = 0xFFE000


def _as_int(cls) -> int:
    if isinstance(cls, int):
        return cls & 0xFFFFFF
    raw = bytes(cls)
    if len(raw) != 3:
        raise ValueError(f"class of device must be 3 bytes, got {len(raw)}")
    return raw[0] | (raw[1] << 8) | (raw[2] << 16)


def decode_minor_class(cls) -> Tuple[str, str]:
    """Return ``(major_label, minor_label)`` for a 3-byte (or integer) class.

    Raises :class:`UnsupportedMajorClassError` when the major class is not
    *computer* and :class:`UnknownMinorClassError` when the minor index is
    past the end of the computer minor class table.
    """
    value = _as_int(cls)
    major = (value >> 8) & MAJOR_CLASS_MASK
    if major != MAJOR_CLASS_COMPUTER:
        raise UnsupportedMajorClassError(major)

    minor = (value & 0xFF) >> 2
    if minor >= len(COMPUTER_MINOR_CLASSES):
        raise UnknownMinorClassError(minor)

    return MAJOR_CLASS_LABEL, COMPUTER_MINOR_CLASSES[minor]


def minor_class_index(label: str) -> int:
    """Case-insensitive index of *label* in the computer minor class table."""
    wanted = label.lower()
    for i, name in enumerate(COMPUTER_MINOR_CLASSES):
        if name == wanted:
            return i
    raise InvalidParameterError("minor class", f"unknown label {label!r}")


def encode_minor_class(label: str, current=0) -> int:
    """Compute the class to write for minor class *label*.

    *current* is the class read back from the controller: its service class
    bits are kept, the major class is forced to *computer* and the minor
    class and format bits are replaced.
    """
    index = minor_class_index(label)
    value = _as_int(current)
    return (value & SERVICE_CLASS_MASK) | (MAJOR_CLASS_COMPUTER << 8) | (index << 2)


def decode_service_classes(cls) -> List[str]:
    """Labels of the service class bits set in the top byte, in table order."""
    service = (_as_int(cls) >> 16) & 0xFF
    return [name for i, name in enumerate(SERVICE_CLASSES) if service & (1 << i)]
