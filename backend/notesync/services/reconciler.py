# @TASK S1-T1.2 - Device note reconciliation (content hash + last-write-wins)
# @TEST tests/test_reconciler.py

"""Reconcile a device's local notes against the server copy.

Strategy, per client note:
1. **Absent on server** → CREATE (server computes ``content_hash``).
2. **Hashes equal** → no-op. Identical content never triggers a write,
   whatever the timestamps say, so retries and duplicate tabs collapse.
3. **Hashes differ**:
   - server ``updated_at`` strictly newer → CONFLICT (nothing written,
     both versions returned to the caller)
   - otherwise → UPDATE (client wins, hash recomputed server-side)

Conflicts are never resolved here; the caller decides.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from notesync.constants import StatisticKey, SyncAction
from notesync.models import Note
from notesync.services.note_store import (
    apply_note_update,
    increment_statistic,
    list_device_notes,
    new_note,
    note_to_dict,
    validate_device_id,
)
from notesync.utils.datetime_utils import datetime_to_iso, ensure_utc
from notesync.utils.hashing import content_hash

logger = logging.getLogger(__name__)


@dataclass
class ClientNote:
    """A note as reported by a device during sync."""

    id: str
    content: str
    content_hash: str | None = None
    title: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_encrypted: bool | None = None

    @property
    def computed_hash(self) -> str:
        return content_hash(self.content)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "content_hash": self.content_hash,
            "created_at": datetime_to_iso(self.created_at),
            "updated_at": datetime_to_iso(self.updated_at),
            "is_encrypted": self.is_encrypted,
        }


@dataclass
class Conflict:
    """Server and client disagree and the server copy is newer."""

    id: str
    server_version: dict
    client_version: dict


@dataclass
class ReconcileResult:
    """Summary of one reconciliation request."""

    conflicts: list[Conflict] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    server_notes_count: int = 0

    @property
    def updates_applied(self) -> int:
        return self.created + self.updated


def classify(server_note: Note | None, client_note: ClientNote) -> SyncAction:
    """Decide what reconciling *client_note* against *server_note* should do.

    The client hash is always derived from the client's content; a hash
    supplied by the client is informational only.
    """
    if server_note is None:
        return SyncAction.CREATE
    if server_note.content_hash == client_note.computed_hash:
        return SyncAction.UNCHANGED

    server_updated = ensure_utc(server_note.updated_at)
    client_updated = ensure_utc(client_note.updated_at)
    # A client without a timestamp cannot prove it is older.
    if client_updated is not None and server_updated is not None and server_updated > client_updated:
        return SyncAction.CONFLICT
    return SyncAction.UPDATE


class SyncReconciler:
    """Apply a device's note set to the server, reporting conflicts.

    Args:
        db: An SQLAlchemy async session (caller manages transaction boundaries).
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def reconcile(self, device_id: str, client_notes: list[ClientNote]) -> ReconcileResult:
        """Reconcile *client_notes* for *device_id*.

        Notes are processed sequentially in request order. A note id that
        appears twice is compared against the state left by its first
        occurrence.

        Raises:
            InvalidDeviceIdError: If ``device_id`` is shorter than the minimum length.
        """
        validate_device_id(device_id)

        try:
            existing: dict[str, Note] = {
                note.note_id: note for note in await list_device_notes(self._db, device_id)
            }
            result = ReconcileResult(server_notes_count=len(existing))

            for client_note in client_notes:
                server_note = existing.get(client_note.id)
                action = classify(server_note, client_note)

                if client_note.content_hash and client_note.content_hash != client_note.computed_hash:
                    logger.debug("Client hash for note %s does not match its content", client_note.id)

                if action is SyncAction.CREATE:
                    note = new_note(
                        note_id=client_note.id,
                        device_id=device_id,
                        content=client_note.content,
                        title=client_note.title,
                        created_at=client_note.created_at,
                        updated_at=client_note.updated_at,
                        is_encrypted=client_note.is_encrypted,
                    )
                    self._db.add(note)
                    existing[client_note.id] = note
                    await increment_statistic(self._db, StatisticKey.TOTAL_NOTES)
                    result.created += 1

                elif action is SyncAction.UPDATE:
                    apply_note_update(
                        server_note,
                        content=client_note.content,
                        title=client_note.title,
                        updated_at=client_note.updated_at,
                        is_encrypted=client_note.is_encrypted,
                    )
                    result.updated += 1

                elif action is SyncAction.CONFLICT:
                    result.conflicts.append(
                        Conflict(
                            id=client_note.id,
                            server_version=note_to_dict(server_note),
                            client_version=client_note.to_dict(),
                        )
                    )
                    logger.info("Conflict detected for note %s on device %s", client_note.id, device_id)

                else:
                    result.unchanged += 1

            await self._db.flush()

        except Exception:
            await self._db.rollback()
            raise

        logger.info(
            "Reconciled device %s: created=%d, updated=%d, unchanged=%d, conflicts=%d, server_notes=%d",
            device_id,
            result.created,
            result.updated,
            result.unchanged,
            len(result.conflicts),
            result.server_notes_count,
        )
        return result
