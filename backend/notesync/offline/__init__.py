"""Client-side offline write queue.

Usage::

    client = NoteSyncClient(settings.SYNC_SERVER_URL)
    queue = OfflineWriteQueue.from_settings(
        JsonFileQueueStorage(settings.QUEUE_STORAGE_PATH),
        build_note_dispatchers(client),
        ConnectivityMonitor(),
    )
    queue.start()
    await queue.submit(NOTE_SAVE, {"id": "n1", "device_id": device_id, "content": text})
"""

from notesync.offline.client import NoteSyncClient, SyncOutcome
from notesync.offline.connectivity import ConnectivityMonitor
from notesync.offline.dispatch import (
    NOTE_DELETE,
    NOTE_SAVE,
    NOTES_SYNC,
    ConflictPolicy,
    ConflictResolution,
    build_note_dispatchers,
    resolve_conflicts,
)
from notesync.offline.errors import (
    DispatchError,
    RateLimitedError,
    RetryableDispatchError,
    TerminalDispatchError,
    UnknownOperationError,
)
from notesync.offline.queue_state import QueueItemStatus, SyncQueueItem
from notesync.offline.storage import JsonFileQueueStorage, MemoryQueueStorage, QueueStorage
from notesync.offline.write_queue import DrainResult, OfflineWriteQueue, QueueNotification

__all__ = [
    "NOTES_SYNC",
    "NOTE_DELETE",
    "NOTE_SAVE",
    "ConflictPolicy",
    "ConflictResolution",
    "ConnectivityMonitor",
    "DispatchError",
    "DrainResult",
    "JsonFileQueueStorage",
    "MemoryQueueStorage",
    "NoteSyncClient",
    "OfflineWriteQueue",
    "QueueItemStatus",
    "QueueNotification",
    "QueueStorage",
    "RateLimitedError",
    "RetryableDispatchError",
    "SyncOutcome",
    "SyncQueueItem",
    "TerminalDispatchError",
    "UnknownOperationError",
    "build_note_dispatchers",
    "resolve_conflicts",
]
