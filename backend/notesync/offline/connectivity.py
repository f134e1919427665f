"""Online/offline signal for the offline write queue."""

from __future__ import annotations

import logging
from collections.abc import Callable

from notesync.offline.client import NoteSyncClient
from notesync.offline.errors import DispatchError, RateLimitedError

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor:
    """Holds the host's belief about connectivity and announces changes.

    The host flips the state from whatever signal it has (OS network events,
    failed requests) or calls :meth:`probe` to ask the server directly.
    Listeners fire only on transitions.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: list[ConnectivityListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            listener(online)

    async def probe(self, client: NoteSyncClient) -> bool:
        """Poll the server health endpoint and update the state from the result."""
        try:
            await client.health()
        except RateLimitedError:
            # Throttled, but the server answered.
            self.set_online(True)
        except DispatchError as exc:
            logger.debug("Health probe failed: %s", exc)
            self.set_online(False)
        else:
            self.set_online(True)
        return self._online
