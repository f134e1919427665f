# @TASK S2-T2.1 - Device note endpoints
# @TEST tests/test_api_notes.py

"""Notes API endpoints.

Endpoints:
- ``GET    /notes/{device_id}``            -- All notes for a device
- ``POST   /notes``                        -- Upsert a note by ``(id, device_id)``
- ``DELETE /notes/{device_id}/{note_id}``  -- Delete one note

Notes are anonymous: the device id is the only ownership boundary.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.api.schemas import NoteOut, NotePayload
from notesync.database import get_db
from notesync.services.device_locks import DeviceLockRegistry, get_device_locks
from notesync.services.note_store import (
    InvalidDeviceIdError,
    NoteNotFoundError,
    delete_note,
    list_device_notes,
    note_to_dict,
    save_note,
    validate_device_id,
)
from notesync.utils.i18n import get_language
from notesync.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class NoteSaveRequest(NotePayload):
    """Request payload for saving a note."""

    content: str = Field(min_length=1)
    device_id: str = Field(min_length=1)


class NoteSaveResponse(BaseModel):
    success: bool = True
    content_hash: str


class NoteListResponse(BaseModel):
    notes: list[NoteOut]
    count: int


class SuccessResponse(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/{device_id}", response_model=NoteListResponse)
async def list_notes(
    device_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> NoteListResponse:
    """Return every note stored for *device_id*."""
    lang = get_language(request)
    try:
        validate_device_id(device_id)
    except InvalidDeviceIdError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("validation.invalid_device_id", lang))

    notes = await list_device_notes(db, device_id)
    return NoteListResponse(
        notes=[NoteOut(**note_to_dict(note)) for note in notes],
        count=len(notes),
    )


@router.post("", response_model=NoteSaveResponse)
async def upsert_note(
    body: NoteSaveRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    locks: DeviceLockRegistry = Depends(get_device_locks),
) -> NoteSaveResponse:
    """Create or update a note; the server computes ``content_hash``."""
    lang = get_language(request)
    try:
        validate_device_id(body.device_id)
    except InvalidDeviceIdError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("validation.invalid_device_id", lang))

    async with locks.lock_for(body.device_id):
        note, created = await save_note(
            db,
            note_id=body.id,
            device_id=body.device_id,
            content=body.content,
            title=body.title,
            created_at=body.created_at,
            updated_at=body.updated_at,
            is_encrypted=body.is_encrypted,
        )
        await db.commit()

    if created:
        logger.info("Created note %s for device %s", body.id, body.device_id)
    return NoteSaveResponse(content_hash=note.content_hash)


@router.delete("/{device_id}/{note_id}", response_model=SuccessResponse)
async def remove_note(
    device_id: str,
    note_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    locks: DeviceLockRegistry = Depends(get_device_locks),
) -> SuccessResponse:
    lang = get_language(request)
    async with locks.lock_for(device_id):
        try:
            await delete_note(db, device_id, note_id)
        except NoteNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=msg("notes.not_found", lang))
        await db.commit()
    return SuccessResponse()
