# @TASK S3-T3.2 - Offline write queue (single-flight FIFO drain)
# @TEST tests/test_write_queue.py

"""Durable queue of note mutations that could not reach the server.

Items are replayed one at a time, oldest first, by a single drain pass.
Concurrent :meth:`OfflineWriteQueue.drain` calls join the pass already
running instead of starting another, so an item is never in flight twice.

What happens to an item after its dispatcher raises:

- :class:`TerminalDispatchError` → removed at once, user notified
- :class:`RateLimitedError` → released without charging an attempt; the
  pass stops and drains are suppressed until the back-off elapses
- anything else → ``failed`` with ``retry_count + 1``; removed and the user
  notified once ``retry_count`` reaches the ceiling

A transition is adopted only once storage has saved it. If saving fails
mid-pass, the pass stops and any in-flight item is released.

Drains are triggered by :meth:`drain`, by :meth:`enqueue`, by the
connectivity monitor going online and by the periodic timer started with
:meth:`start`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from notesync.config import Settings, get_settings
from notesync.offline.connectivity import ConnectivityMonitor
from notesync.offline.errors import (
    RateLimitedError,
    TerminalDispatchError,
    UnknownOperationError,
)
from notesync.offline.queue_state import (
    SyncQueueItem,
    clear_completed,
    create_item,
    is_eligible,
    is_exhausted,
    mark_completed,
    mark_failed,
    mark_syncing,
    next_eligible,
    prune_completed,
    queue_stats,
    recover_interrupted,
    release,
    remove_item,
    replace_item,
    reset_failed,
)
from notesync.offline.storage import QueueStorage

logger = logging.getLogger(__name__)

Dispatcher = Callable[[dict], Awaitable[Any]]


@dataclass(frozen=True)
class QueueNotification:
    """A user-facing message about queue progress."""

    level: str  # "success" | "warning" | "error"
    message: str
    item_id: str | None = None
    item_type: str | None = None


Notifier = Callable[[QueueNotification], None]


@dataclass
class DrainResult:
    """Outcome of one drain pass (or the reason none ran)."""

    completed: int = 0
    failed: int = 0
    dropped: int = 0
    rate_limited: bool = False
    skipped: str | None = None  # "offline" | "backoff"
    error: str | None = None  # set when the queue could not be saved


def _log_notification(notification: QueueNotification) -> None:
    level = logging.INFO if notification.level == "success" else logging.WARNING
    logger.log(level, "Sync queue: %s", notification.message)


class OfflineWriteQueue:
    """Persisted FIFO of pending writes with bounded retry.

    Args:
        storage: Persistence adapter; owned exclusively by this queue.
        dispatchers: Maps item ``type`` to the coroutine that performs it.
        connectivity: Online/offline signal. Defaults to always online.
        retry_ceiling: Attempts allowed before an item is dropped.
        completed_grace: Seconds completed items stay visible before pruning.
        drain_interval: Period of the background drain timer.
        notifier: Receives user-facing notifications. Defaults to logging.
        clock: Wall-clock source (epoch seconds), injectable for tests.
    """

    def __init__(
        self,
        storage: QueueStorage,
        dispatchers: Mapping[str, Dispatcher],
        connectivity: ConnectivityMonitor | None = None,
        *,
        retry_ceiling: int = 3,
        completed_grace: float = 5.0,
        drain_interval: float = 30.0,
        notifier: Notifier | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if retry_ceiling < 1:
            raise ValueError("retry_ceiling must be at least 1")
        self._storage = storage
        self._dispatchers = dict(dispatchers)
        self._connectivity = connectivity or ConnectivityMonitor(online=True)
        self._ceiling = retry_ceiling
        self._grace = completed_grace
        self._interval = drain_interval
        self._notify = notifier or _log_notification
        self._clock = clock

        self._current_pass: asyncio.Task[DrainResult] | None = None
        self._timer_task: asyncio.Task[None] | None = None
        self._prune_handle: asyncio.TimerHandle | None = None
        self._backoff_until = 0.0

        loaded = storage.load()
        self._items: list[SyncQueueItem] = recover_interrupted(loaded)
        if self._items != loaded:
            logger.info("Released queue items interrupted mid-sync")
            self._persist()

        self._remove_listener = self._connectivity.add_listener(self._on_connectivity_change)

    @classmethod
    def from_settings(
        cls,
        storage: QueueStorage,
        dispatchers: Mapping[str, Dispatcher],
        connectivity: ConnectivityMonitor | None = None,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> OfflineWriteQueue:
        settings = settings or get_settings()
        return cls(
            storage,
            dispatchers,
            connectivity,
            retry_ceiling=settings.QUEUE_RETRY_CEILING,
            completed_grace=settings.QUEUE_COMPLETED_GRACE_SECONDS,
            drain_interval=settings.QUEUE_DRAIN_INTERVAL_SECONDS,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def items(self) -> tuple[SyncQueueItem, ...]:
        return tuple(self._items)

    @property
    def retry_ceiling(self) -> int:
        return self._ceiling

    @property
    def is_draining(self) -> bool:
        return self._current_pass is not None and not self._current_pass.done()

    def stats(self) -> dict[str, int]:
        return queue_stats(self._items)

    def has_eligible(self) -> bool:
        return any(is_eligible(item, self._ceiling) for item in self._items)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def enqueue(self, item_type: str, data: dict) -> SyncQueueItem:
        """Append a pending item and, if online, kick off a drain.

        Duplicate ``(type, data)`` pairs are accepted as separate items.
        """
        item = create_item(item_type, data, now=self._clock())
        self._commit([*self._items, item])
        logger.debug("Enqueued %s item %s", item_type, item.id)
        self._start_pass_in_background()
        return item

    async def submit(self, item_type: str, data: dict) -> bool:
        """Try a write immediately, falling back to the queue.

        The write only bypasses the queue when nothing is waiting in it, so
        replay order is preserved.

        Returns:
            ``True`` if the write reached the server now, ``False`` if it was queued.

        Raises:
            TerminalDispatchError: The server rejected the write; it is not queued.
        """
        dispatcher = self._dispatchers.get(item_type)
        if dispatcher is None:
            raise UnknownOperationError(item_type)

        if not self._can_drain() or self.has_eligible() or self.is_draining:
            self.enqueue(item_type, data)
            return False

        try:
            await dispatcher(data)
        except TerminalDispatchError:
            raise
        except RateLimitedError as exc:
            self._backoff_until = self._clock() + exc.retry_after
            self.enqueue(item_type, data)
            return False
        except Exception as exc:
            logger.warning("Immediate %s failed, queued for retry: %s", item_type, exc)
            self.enqueue(item_type, data)
            return False
        return True

    async def drain(self) -> DrainResult:
        """Replay eligible items, joining the running pass if there is one."""
        if not self._connectivity.is_online:
            return DrainResult(skipped="offline")
        if self._in_backoff():
            return DrainResult(skipped="backoff")

        task = self._current_pass
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._run_pass())
            self._current_pass = task
        return await asyncio.shield(task)

    async def retry_failed(self) -> DrainResult:
        """Reset failed items to pending with a fresh retry budget, then drain.

        A pass that is already running has skipped those items, so another
        pass follows it.
        """
        joined = self.is_draining
        self._commit(reset_failed(self._items))
        result = await self.drain()
        if joined and self.has_eligible():
            result = await self.drain()
        return result

    def clear_completed(self) -> int:
        kept = clear_completed(self._items)
        removed = len(self._items) - len(kept)
        if removed:
            self._commit(kept)
        return removed

    def prune_completed(self) -> int:
        """Drop completed items whose grace period has elapsed."""
        kept = prune_completed(self._items, self._clock(), self._grace)
        removed = len(self._items) - len(kept)
        if removed:
            self._commit(kept)
            logger.debug("Pruned %d completed queue items", removed)
        return removed

    # ------------------------------------------------------------------
    # Background triggers
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic drain timer (and drain once if work is waiting)."""
        if self._timer_task is not None and not self._timer_task.done():
            return
        self._timer_task = asyncio.get_running_loop().create_task(self._periodic_drain())
        if self.has_eligible():
            self._start_pass_in_background()

    async def stop(self) -> None:
        """Stop background timers; an in-flight pass is allowed to finish."""
        if self._timer_task is not None:
            self._timer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer_task
            self._timer_task = None
        if self._prune_handle is not None:
            self._prune_handle.cancel()
            self._prune_handle = None
        if self.is_draining:
            await asyncio.shield(self._current_pass)

    def close(self) -> None:
        """Detach from the connectivity monitor."""
        self._remove_listener()

    async def _periodic_drain(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self.has_eligible():
                try:
                    await self.drain()
                except Exception:
                    logger.exception("Periodic queue drain failed")

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self._start_pass_in_background()

    def _start_pass_in_background(self) -> None:
        if not self._can_drain() or self.is_draining:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (synchronous caller); the next drain picks it up.
            return
        task = loop.create_task(self._run_pass())
        task.add_done_callback(self._report_pass_failure)
        self._current_pass = task

    @staticmethod
    def _report_pass_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background queue drain failed", exc_info=exc)

    # ------------------------------------------------------------------
    # Drain pass
    # ------------------------------------------------------------------

    async def _run_pass(self) -> DrainResult:
        result = DrainResult()
        attempted: set[str] = set()

        try:
            self.prune_completed()
            while self._connectivity.is_online:
                item = next_eligible(self._items, self._ceiling, exclude=attempted)
                if item is None:
                    break
                attempted.add(item.id)
                if not await self._process(item, result):
                    break
        except OSError as exc:
            # Storage failed mid-transition; nothing may stay stuck in flight.
            self._items = recover_interrupted(self._items)
            result.error = str(exc)
            logger.error("Could not save sync queue, stopping drain: %s", exc)
            self._notify(QueueNotification("error", f"Could not save sync queue: {exc}"))

        if result.completed:
            self._notify(QueueNotification("success", f"Synced {result.completed} items successfully"))
            self._schedule_prune()
        if result.completed or result.failed or result.dropped:
            logger.info(
                "Queue drain finished: completed=%d, failed=%d, dropped=%d, remaining=%d",
                result.completed, result.failed, result.dropped, len(self._items),
            )
        return result

    async def _process(self, item: SyncQueueItem, result: DrainResult) -> bool:
        """Dispatch one item. Returns ``False`` when the pass must stop."""
        in_flight = mark_syncing(item)
        self._replace(in_flight)

        try:
            dispatcher = self._dispatchers.get(item.type)
            if dispatcher is None:
                raise UnknownOperationError(item.type)
            await dispatcher(item.payload)

        except RateLimitedError as exc:
            self._replace(release(in_flight))
            self._backoff_until = self._clock() + exc.retry_after
            result.rate_limited = True
            self._notify(
                QueueNotification(
                    "warning",
                    f"Server is rate limiting sync, retrying in {exc.retry_after:g}s",
                    item.id,
                    item.type,
                )
            )
            return False

        except TerminalDispatchError as exc:
            self._remove(item.id)
            result.dropped += 1
            logger.warning("Dropping %s item %s: %s", item.type, item.id, exc)
            self._notify(QueueNotification("error", f"Failed to sync {item.type}: {exc}", item.id, item.type))

        except Exception as exc:
            failed = mark_failed(in_flight, str(exc))
            logger.warning(
                "Sync failed for %s item %s (attempt %d/%d): %s",
                item.type, item.id, failed.retry_count, self._ceiling, exc,
            )
            if is_exhausted(failed, self._ceiling):
                self._remove(item.id)
                result.dropped += 1
                self._notify(
                    QueueNotification(
                        "error",
                        f"Failed to sync {item.type} after {failed.retry_count} attempts",
                        item.id,
                        item.type,
                    )
                )
            else:
                self._replace(failed)
                result.failed += 1

        else:
            self._replace(mark_completed(in_flight, self._clock()))
            result.completed += 1

        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _can_drain(self) -> bool:
        return self._connectivity.is_online and not self._in_backoff()

    def _in_backoff(self) -> bool:
        return self._clock() < self._backoff_until

    def _replace(self, item: SyncQueueItem) -> None:
        self._commit(replace_item(self._items, item))

    def _remove(self, item_id: str) -> None:
        self._commit(remove_item(self._items, item_id))

    def _commit(self, items: list[SyncQueueItem]) -> None:
        """Adopt *items* only if they were saved."""
        previous = self._items
        self._items = items
        try:
            self._persist()
        except Exception:
            self._items = previous
            raise

    def _persist(self) -> None:
        self._storage.save(self._items)

    def _schedule_prune(self) -> None:
        if self._prune_handle is not None:
            self._prune_handle.cancel()
        loop = asyncio.get_running_loop()
        self._prune_handle = loop.call_later(self._grace, self.prune_completed)
