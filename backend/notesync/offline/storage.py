"""Persistence adapters for the offline write queue.

The queue owns its storage exclusively: it loads once at start-up and
saves the full item list after every transition.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from notesync.offline.queue_state import SyncQueueItem

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


class QueueStorage(Protocol):
    def load(self) -> list[SyncQueueItem]: ...

    def save(self, items: Sequence[SyncQueueItem]) -> None: ...


class MemoryQueueStorage:
    """Non-durable storage, for tests and short-lived processes."""

    def __init__(self, items: Sequence[SyncQueueItem] = ()) -> None:
        self._items: list[SyncQueueItem] = list(items)
        self.save_count = 0

    def load(self) -> list[SyncQueueItem]:
        return list(self._items)

    def save(self, items: Sequence[SyncQueueItem]) -> None:
        self._items = list(items)
        self.save_count += 1


class JsonFileQueueStorage:
    """Durable storage as a JSON document keyed by item id.

    Writes go to a temporary file in the same directory and are moved into
    place with :func:`os.replace`, so a crash never leaves a half-written
    queue behind. Item order in the document is insertion order.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[SyncQueueItem]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            items = [SyncQueueItem.from_dict(raw) for raw in data.get("items", {}).values()]
        except (ValueError, KeyError, TypeError, AttributeError):
            # Keep the unreadable file for inspection instead of overwriting it.
            corrupt = self._path.with_name(self._path.name + ".corrupt")
            os.replace(self._path, corrupt)
            logger.warning("Unreadable sync queue at %s moved to %s", self._path, corrupt)
            return []
        logger.debug("Loaded %d queue items from %s", len(items), self._path)
        return items

    def save(self, items: Sequence[SyncQueueItem]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "version": _FORMAT_VERSION,
            "items": {item.id: item.to_dict() for item in items},
        }
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
