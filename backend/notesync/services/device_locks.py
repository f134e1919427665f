"""Per-device advisory locks for note writes within one server process."""

from __future__ import annotations

import asyncio
import weakref

from fastapi import Request


class DeviceLockRegistry:
    """Hand out one :class:`asyncio.Lock` per device id.

    Two tabs of the same device syncing at once would otherwise interleave
    their read-compare-write cycles. Locks are held weakly and disappear
    once no request is using them. This does not coordinate across
    processes; multiple workers still fall back to last-write-wins.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def lock_for(self, device_id: str) -> asyncio.Lock:
        lock = self._locks.get(device_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[device_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


def get_device_locks(request: Request) -> DeviceLockRegistry:
    """FastAPI dependency returning the app's lock registry."""
    return request.app.state.device_locks
