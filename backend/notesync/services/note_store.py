# @TASK S1-T1.1 - Device-scoped note persistence
# @TEST tests/test_note_store.py

"""Persistence helpers for device-scoped notes and server statistics.

Notes are keyed by ``(note_id, device_id)``; every write recomputes
``content_hash`` from the stored content so the hash can never drift
from the text it describes.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.constants import DEFAULT_NOTE_TITLE, MIN_DEVICE_ID_LENGTH, StatisticKey
from notesync.models import Note, ServerStatistic
from notesync.utils.datetime_utils import datetime_to_iso, utc_now
from notesync.utils.hashing import content_hash

logger = logging.getLogger(__name__)


class InvalidDeviceIdError(ValueError):
    """Raised when a device id is missing or too short to be a namespace."""

    def __init__(self, device_id: str | None) -> None:
        self.device_id = device_id
        super().__init__(f"Invalid device ID: {device_id!r}")


class NoteNotFoundError(LookupError):
    """Raised when no note exists for the given ``(note_id, device_id)``."""

    def __init__(self, device_id: str, note_id: str) -> None:
        self.device_id = device_id
        self.note_id = note_id
        super().__init__(f"Note {note_id} not found for device {device_id}")


def validate_device_id(device_id: str | None) -> str:
    """Return *device_id* unchanged, or raise :class:`InvalidDeviceIdError`."""
    if not device_id or len(device_id) < MIN_DEVICE_ID_LENGTH:
        raise InvalidDeviceIdError(device_id)
    return device_id


def note_to_dict(note: Note) -> dict:
    """Serialise a note into the wire format shared by all endpoints."""
    return {
        "id": note.note_id,
        "device_id": note.device_id,
        "title": note.title,
        "content": note.content,
        "content_hash": note.content_hash,
        "created_at": datetime_to_iso(note.created_at),
        "updated_at": datetime_to_iso(note.updated_at),
        "is_encrypted": note.is_encrypted,
    }


async def get_note(db: AsyncSession, device_id: str, note_id: str) -> Note | None:
    stmt = select(Note).where(Note.device_id == device_id, Note.note_id == note_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_device_notes(db: AsyncSession, device_id: str) -> list[Note]:
    """Return every note owned by *device_id*, oldest first."""
    stmt = select(Note).where(Note.device_id == device_id).order_by(Note.created_at, Note.pk)
    result = await db.execute(stmt)
    return list(result.scalars().all())


def new_note(
    *,
    note_id: str,
    device_id: str,
    content: str,
    title: str | None = None,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
    is_encrypted: bool | None = None,
) -> Note:
    """Build (but do not add) a note row with defaults and a fresh hash."""
    now = utc_now()
    return Note(
        note_id=note_id,
        device_id=device_id,
        content=content,
        content_hash=content_hash(content),
        title=title or DEFAULT_NOTE_TITLE,
        created_at=created_at or now,
        updated_at=updated_at or now,
        is_encrypted=bool(is_encrypted),
    )


def apply_note_update(
    note: Note,
    *,
    content: str,
    title: str | None = None,
    updated_at: datetime | None = None,
    is_encrypted: bool | None = None,
) -> None:
    """Overwrite a note in place; fields left as ``None`` keep their value."""
    note.content = content
    note.content_hash = content_hash(content)
    if title:
        note.title = title
    note.updated_at = updated_at or utc_now()
    if is_encrypted is not None:
        note.is_encrypted = is_encrypted


async def save_note(
    db: AsyncSession,
    *,
    note_id: str,
    device_id: str,
    content: str,
    title: str | None = None,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
    is_encrypted: bool | None = None,
) -> tuple[Note, bool]:
    """Create or update the note identified by ``(note_id, device_id)``.

    Returns:
        The persisted note and ``True`` if it was newly created.
    """
    validate_device_id(device_id)
    note = await get_note(db, device_id, note_id)
    if note is None:
        note = new_note(
            note_id=note_id,
            device_id=device_id,
            content=content,
            title=title,
            created_at=created_at,
            updated_at=updated_at,
            is_encrypted=is_encrypted,
        )
        db.add(note)
        await increment_statistic(db, StatisticKey.TOTAL_NOTES)
        created = True
    else:
        apply_note_update(
            note,
            content=content,
            title=title,
            updated_at=updated_at,
            is_encrypted=is_encrypted,
        )
        created = False

    await db.flush()
    logger.debug("Saved note %s for device %s (created=%s)", note_id, device_id, created)
    return note, created


async def delete_note(db: AsyncSession, device_id: str, note_id: str) -> None:
    """Delete a note, raising :class:`NoteNotFoundError` if it does not exist."""
    note = await get_note(db, device_id, note_id)
    if note is None:
        raise NoteNotFoundError(device_id, note_id)
    await db.delete(note)
    await db.flush()
    logger.info("Deleted note %s for device %s", note_id, device_id)


# ------------------------------------------------------------------
# Statistics
# ------------------------------------------------------------------


async def increment_statistic(db: AsyncSession, key: StatisticKey, amount: int = 1) -> int:
    """Add *amount* to a server counter and return the new value."""
    stat = await db.get(ServerStatistic, str(key))
    if stat is None:
        stat = ServerStatistic(key=str(key), value=amount)
        db.add(stat)
    else:
        stat.value += amount
    await db.flush()
    return stat.value


async def get_statistics(db: AsyncSession) -> dict[str, int]:
    """Return all counters, with missing ones reported as zero."""
    result = await db.execute(select(ServerStatistic))
    values = {stat.key: stat.value for stat in result.scalars().all()}
    return {str(key): values.get(str(key), 0) for key in StatisticKey}
