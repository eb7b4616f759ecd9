"""
Adapter change notifications.

Handlers announce state changes through a :class:`ChangeEmitter`; emission is
best-effort and never affects the reply of the request that caused it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Sequence

from adapterd.core.log import get_logger

if TYPE_CHECKING:
    from adapterd.dbuslayer.session import AdapterHandle

logger = get_logger(__name__)

__all__ = ["ChangeEmitter", "LogEmitter"]


class ChangeEmitter(ABC):
    @abstractmethod
    def emit(self, handle: "AdapterHandle", event: str, args: Sequence[Any], signature: str = "") -> None:
        """Publish *event* with *args* for the adapter identified by *handle*."""


class LogEmitter(ChangeEmitter):
    """Emitter used when no bus is attached: notifications are only logged."""

    def emit(self, handle: "AdapterHandle", event: str, args: Sequence[Any], signature: str = "") -> None:
        logger.info(f"{handle.path}: {event}{tuple(args)!r}")
