# @TASK S2-T2.2 - Sync API endpoint
# @TEST tests/test_api_sync.py

"""Sync API endpoint for reconciling a device's notes.

Provides:
- ``POST /sync/{device_id}`` -- Reconcile the posted notes against the
  server copy and report conflicts.

The whole body is validated before any note is touched, so a malformed
request never applies partial changes. Writes for one device are
serialised through the app's :class:`DeviceLockRegistry`.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.api.schemas import NotePayload
from notesync.database import get_db
from notesync.services.device_locks import DeviceLockRegistry, get_device_locks
from notesync.services.note_store import InvalidDeviceIdError, validate_device_id
from notesync.services.reconciler import ClientNote, SyncReconciler
from notesync.utils.i18n import get_language
from notesync.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ClientNotePayload(NotePayload):
    """A device's local note as sent for reconciliation."""

    content_hash: str | None = None


class SyncRequest(BaseModel):
    notes: list[ClientNotePayload]
    last_sync: str | None = None


class ConflictItem(BaseModel):
    id: str
    server_version: dict
    client_version: dict


class SyncResponse(BaseModel):
    success: bool = True
    conflicts: list[ConflictItem]
    updates: int
    server_notes: int
    message: str


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------


def _to_client_note(payload: ClientNotePayload) -> ClientNote:
    return ClientNote(
        id=payload.id,
        content=payload.content,
        content_hash=payload.content_hash,
        title=payload.title,
        created_at=payload.created_at,
        updated_at=payload.updated_at,
        is_encrypted=payload.is_encrypted,
    )


@router.post("/{device_id}", response_model=SyncResponse)
async def sync_device_notes(
    device_id: str,
    body: SyncRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    locks: DeviceLockRegistry = Depends(get_device_locks),
) -> SyncResponse:
    """Reconcile a device's notes and return conflicts for the caller to resolve."""
    lang = get_language(request)
    try:
        validate_device_id(device_id)
    except InvalidDeviceIdError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("validation.invalid_device_id", lang))

    logger.info(
        "Sync requested by device %s: %d notes (last_sync=%s)",
        device_id, len(body.notes), body.last_sync,
    )

    async with locks.lock_for(device_id):
        reconciler = SyncReconciler(db)
        result = await reconciler.reconcile(device_id, [_to_client_note(n) for n in body.notes])
        await db.commit()

    if result.conflicts:
        message = msg("sync.conflicts", lang, count=len(result.conflicts))
    else:
        message = msg("sync.completed", lang, updates=result.updates_applied)

    return SyncResponse(
        conflicts=[
            ConflictItem(id=c.id, server_version=c.server_version, client_version=c.client_version)
            for c in result.conflicts
        ],
        updates=result.updates_applied,
        server_notes=result.server_notes_count,
        message=message,
    )
