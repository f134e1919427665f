# @TASK S2-T2.3 - Public share endpoints
# @TEST tests/test_api_share.py

"""Public note sharing.

Endpoints:
- ``POST /share``             -- Publish a read-only snapshot
- ``GET  /share/{share_id}``  -- Read a snapshot (404 unknown, 410 expired)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.config import get_settings
from notesync.database import get_db
from notesync.services.share_service import ShareExpiredError, ShareNotFoundError, create_share, get_share
from notesync.utils.datetime_utils import datetime_to_iso
from notesync.utils.i18n import get_language
from notesync.utils.messages import msg

router = APIRouter(prefix="/share", tags=["share"])


class ShareCreateRequest(BaseModel):
    content: str = Field(min_length=1)
    title: str | None = None
    expires_in: int | None = Field(default=None, ge=1)  # days


class ShareCreateResponse(BaseModel):
    success: bool = True
    share_id: str
    expires_at: str


class SharedNoteResponse(BaseModel):
    id: str
    title: str
    content: str
    created_at: str | None = None
    expires_at: str | None = None
    views: int


@router.post("", response_model=ShareCreateResponse)
async def share_note(
    body: ShareCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> ShareCreateResponse:
    expires_in = body.expires_in or get_settings().SHARE_DEFAULT_EXPIRY_DAYS
    share = await create_share(db, content=body.content, title=body.title, expires_in_days=expires_in)
    return ShareCreateResponse(share_id=share.id, expires_at=datetime_to_iso(share.expires_at))


@router.get("/{share_id}", response_model=SharedNoteResponse)
async def read_shared_note(
    share_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SharedNoteResponse:
    lang = get_language(request)
    try:
        share = await get_share(db, share_id)
    except ShareNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=msg("share.not_found", lang))
    except ShareExpiredError:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=msg("share.expired", lang))

    return SharedNoteResponse(
        id=share.id,
        title=share.title,
        content=share.content,
        created_at=datetime_to_iso(share.created_at),
        expires_at=datetime_to_iso(share.expires_at),
        views=share.views,
    )
