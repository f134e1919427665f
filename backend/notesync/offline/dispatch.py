"""Note operations for the offline write queue and conflict resolution.

:func:`build_note_dispatchers` supplies the queue's dispatch table for the
note endpoints. :func:`resolve_conflicts` turns the conflicts a sync
reports into local actions according to a :class:`ConflictPolicy`.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from notesync.offline.client import NoteSyncClient
from notesync.offline.errors import TerminalDispatchError
from notesync.offline.write_queue import Dispatcher
from notesync.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

NOTE_SAVE = "note-save"
NOTE_DELETE = "note-delete"
NOTES_SYNC = "notes-sync"

ConflictHandler = Callable[[list[dict]], Awaitable[None] | None]


def _require(payload: dict, *keys: str) -> None:
    missing = [key for key in keys if payload.get(key) in (None, "")]
    if missing:
        raise TerminalDispatchError(f"Queue payload is missing {', '.join(missing)}")


def build_note_dispatchers(
    client: NoteSyncClient,
    on_conflicts: ConflictHandler | None = None,
) -> dict[str, Dispatcher]:
    """Map note queue item types to calls on *client*.

    - ``note-save``   payload: a note dict with ``id``, ``device_id``, ``content``
    - ``note-delete`` payload: ``{"device_id", "id"}``; an already-deleted note counts as done
    - ``notes-sync``  payload: ``{"device_id", "notes", "last_sync"?}``; reported
      conflicts go to *on_conflicts*
    """

    async def save(payload: dict) -> None:
        _require(payload, "id", "device_id", "content")
        await client.save_note(payload)

    async def delete(payload: dict) -> None:
        _require(payload, "id", "device_id")
        await client.delete_note(payload["device_id"], payload["id"], missing_ok=True)

    async def sync(payload: dict) -> None:
        _require(payload, "device_id")
        outcome = await client.sync_notes(
            payload["device_id"],
            payload.get("notes") or [],
            payload.get("last_sync"),
        )
        if outcome.conflicts and on_conflicts is not None:
            handled = on_conflicts(outcome.conflicts)
            if inspect.isawaitable(handled):
                await handled

    return {NOTE_SAVE: save, NOTE_DELETE: delete, NOTES_SYNC: sync}


# ------------------------------------------------------------------
# Conflict resolution
# ------------------------------------------------------------------


class ConflictPolicy(StrEnum):
    SERVER_WINS = "server_wins"
    CLIENT_WINS = "client_wins"
    MANUAL = "manual"


@dataclass
class ConflictResolution:
    """What the client should do about a batch of conflicts.

    Attributes:
        adopt: Server versions to write into local storage.
        resave: Client versions to send again as ``note-save`` items, stamped
            with a fresh ``updated_at`` so they win the next comparison.
        unresolved: Conflicts left for the user to decide.
    """

    adopt: list[dict] = field(default_factory=list)
    resave: list[dict] = field(default_factory=list)
    unresolved: list[dict] = field(default_factory=list)


def resolve_conflicts(
    conflicts: list[dict],
    policy: ConflictPolicy,
    now: str | None = None,
) -> ConflictResolution:
    """Apply *policy* to conflicts as returned by ``POST /api/sync``."""
    resolution = ConflictResolution()
    stamp = now or utc_now().isoformat()

    for conflict in conflicts:
        server_version = conflict.get("server_version") or {}
        client_version = conflict.get("client_version") or {}

        if policy is ConflictPolicy.SERVER_WINS:
            resolution.adopt.append(server_version)
        elif policy is ConflictPolicy.CLIENT_WINS:
            resolution.resave.append(
                {
                    **{k: v for k, v in client_version.items() if v is not None},
                    "device_id": server_version.get("device_id"),
                    "updated_at": stamp,
                }
            )
        else:
            resolution.unresolved.append(conflict)

    if resolution.unresolved:
        logger.info("%d conflicts left for manual resolution", len(resolution.unresolved))
    return resolution
