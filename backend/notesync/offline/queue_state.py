# @TASK S3-T3.1 - Sync queue item state machine
# @TEST tests/test_queue_state.py

"""Pure state transitions for offline write queue items.

::

    pending --drain--> syncing --ok--> completed --grace--> (pruned)
    syncing --error--> failed  (retry_count += 1)
    failed  --retry_count < ceiling--> eligible again
    failed  --retry_count >= ceiling--> (removed, user notified)

Nothing here touches storage or the network: every function takes items
(or a list of items) and returns new ones, so the queue's behaviour can be
tested without a backend.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field, replace
from enum import StrEnum
from uuid import uuid4


class QueueItemStatus(StrEnum):
    PENDING = "pending"
    SYNCING = "syncing"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidTransitionError(Exception):
    """Raised when an item is moved along an edge the state machine lacks."""

    def __init__(self, item_id: str, current: QueueItemStatus, target: QueueItemStatus) -> None:
        self.item_id = item_id
        self.current = current
        self.target = target
        super().__init__(f"Queue item {item_id}: cannot go from {current} to {target}")


@dataclass(frozen=True)
class SyncQueueItem:
    """One pending mutation waiting to be replayed against the server."""

    id: str
    type: str
    payload: dict = field(default_factory=dict)
    status: QueueItemStatus = QueueItemStatus.PENDING
    retry_count: int = 0
    timestamp: float = 0.0  # creation time, epoch seconds
    completed_at: float | None = None
    last_error: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = str(self.status)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> SyncQueueItem:
        return cls(
            id=data["id"],
            type=data["type"],
            payload=data.get("payload") or {},
            status=QueueItemStatus(data.get("status", QueueItemStatus.PENDING)),
            retry_count=int(data.get("retry_count", 0)),
            timestamp=float(data.get("timestamp", 0.0)),
            completed_at=data.get("completed_at"),
            last_error=data.get("last_error"),
        )


def create_item(item_type: str, payload: dict, now: float, item_id: str | None = None) -> SyncQueueItem:
    """Build a pending item holding its own copy of *payload*."""
    return SyncQueueItem(
        id=item_id or uuid4().hex,
        type=item_type,
        payload=copy.deepcopy(payload),
        timestamp=now,
    )


# ------------------------------------------------------------------
# Predicates
# ------------------------------------------------------------------


def is_eligible(item: SyncQueueItem, ceiling: int) -> bool:
    """Whether a drain pass may pick this item up."""
    if item.status is QueueItemStatus.PENDING:
        return True
    return item.status is QueueItemStatus.FAILED and item.retry_count < ceiling


def is_exhausted(item: SyncQueueItem, ceiling: int) -> bool:
    return item.status is QueueItemStatus.FAILED and item.retry_count >= ceiling


def next_eligible(
    items: Sequence[SyncQueueItem],
    ceiling: int,
    exclude: Iterable[str] = (),
) -> SyncQueueItem | None:
    """Return the oldest eligible item not in *exclude* (FIFO by insertion)."""
    skipped = set(exclude)
    for item in items:
        if item.id not in skipped and is_eligible(item, ceiling):
            return item
    return None


# ------------------------------------------------------------------
# Single-item transitions
# ------------------------------------------------------------------


def mark_syncing(item: SyncQueueItem) -> SyncQueueItem:
    if item.status not in (QueueItemStatus.PENDING, QueueItemStatus.FAILED):
        raise InvalidTransitionError(item.id, item.status, QueueItemStatus.SYNCING)
    return replace(item, status=QueueItemStatus.SYNCING)


def mark_completed(item: SyncQueueItem, now: float) -> SyncQueueItem:
    if item.status is not QueueItemStatus.SYNCING:
        raise InvalidTransitionError(item.id, item.status, QueueItemStatus.COMPLETED)
    return replace(item, status=QueueItemStatus.COMPLETED, completed_at=now, last_error=None)


def mark_failed(item: SyncQueueItem, error: str | None = None) -> SyncQueueItem:
    if item.status is not QueueItemStatus.SYNCING:
        raise InvalidTransitionError(item.id, item.status, QueueItemStatus.FAILED)
    return replace(
        item,
        status=QueueItemStatus.FAILED,
        retry_count=item.retry_count + 1,
        last_error=error,
    )


def release(item: SyncQueueItem) -> SyncQueueItem:
    """Return an in-flight item to the queue without charging an attempt."""
    if item.status is not QueueItemStatus.SYNCING:
        raise InvalidTransitionError(item.id, item.status, QueueItemStatus.PENDING)
    status = QueueItemStatus.FAILED if item.retry_count else QueueItemStatus.PENDING
    return replace(item, status=status)


# ------------------------------------------------------------------
# Whole-queue transitions
# ------------------------------------------------------------------


def replace_item(items: Sequence[SyncQueueItem], updated: SyncQueueItem) -> list[SyncQueueItem]:
    return [updated if item.id == updated.id else item for item in items]


def remove_item(items: Sequence[SyncQueueItem], item_id: str) -> list[SyncQueueItem]:
    return [item for item in items if item.id != item_id]


def prune_completed(items: Sequence[SyncQueueItem], now: float, grace: float) -> list[SyncQueueItem]:
    """Drop completed items whose grace period has elapsed."""
    return [
        item
        for item in items
        if not (
            item.status is QueueItemStatus.COMPLETED
            and (item.completed_at or 0.0) + grace <= now
        )
    ]


def clear_completed(items: Sequence[SyncQueueItem]) -> list[SyncQueueItem]:
    return [item for item in items if item.status is not QueueItemStatus.COMPLETED]


def reset_failed(items: Sequence[SyncQueueItem]) -> list[SyncQueueItem]:
    """Give every failed item a fresh set of attempts."""
    return [
        replace(item, status=QueueItemStatus.PENDING, retry_count=0, last_error=None)
        if item.status is QueueItemStatus.FAILED
        else item
        for item in items
    ]


def recover_interrupted(items: Sequence[SyncQueueItem]) -> list[SyncQueueItem]:
    """Release items left ``syncing`` by a process that stopped mid-dispatch."""
    return [release(item) if item.status is QueueItemStatus.SYNCING else item for item in items]


def queue_stats(items: Iterable[SyncQueueItem]) -> dict[str, int]:
    counts = {str(status): 0 for status in QueueItemStatus}
    total = 0
    for item in items:
        counts[str(item.status)] += 1
        total += 1
    counts["total"] = total
    return counts
