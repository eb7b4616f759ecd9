"""
HCI layer for adapterd: the command channel and the class of device codec.
"""

from .channel import ChannelOpener, ConnectionInfo, HciSession, LocalVersion
from .device_class import decode_minor_class, decode_service_classes, encode_minor_class

__all__ = [
    "ChannelOpener",
    "ConnectionInfo",
    "HciSession",
    "LocalVersion",
    "decode_minor_class",
    "decode_service_classes",
    "encode_minor_class",
]
