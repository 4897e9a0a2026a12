"""Connectivity signal consumed by the upload service.

The capture front-end (or a network monitor) reports online/offline
changes; listeners registered here run when connectivity comes back so a
drain can start immediately instead of waiting for the next sync tick.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Protocol

from fieldsync.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger(__name__)


class Connectivity(Protocol):
    """Read side of the connectivity signal."""

    @property
    def is_online(self) -> bool: ...


class ConnectivitySignal:
    """Settable online flag with offline-to-online listeners."""

    def __init__(self, *, online: bool = True) -> None:
        self._is_online = online
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return self._is_online

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback run each time connectivity is restored."""
        with self._lock:
            self._listeners.append(callback)

    def set_online(self, online: bool) -> None:
        """Record the current connectivity state.

        Listeners only fire on an offline-to-online edge. A failing listener
        is logged and does not stop the others.
        """
        with self._lock:
            restored = online and not self._is_online
            lost = self._is_online and not online
            self._is_online = online
            listeners = list(self._listeners) if restored else []

        if lost:
            logger.warning("Connectivity lost, uploads paused")
            return
        if not restored:
            return

        logger.info("Connectivity restored, notifying %d listeners", len(listeners))
        for callback in listeners:
            try:
                callback()
            except Exception:
                logger.exception("Connectivity listener %r failed", callback)
