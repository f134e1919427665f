"""Public, expiring read-only note shares."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from notesync.constants import DEFAULT_SHARE_TITLE, SHARE_ID_LENGTH, StatisticKey
from notesync.models import SharedNote
from notesync.services.note_store import increment_statistic
from notesync.utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

_MAX_ID_ATTEMPTS = 5


class ShareNotFoundError(LookupError):
    """Raised when a share id does not exist."""


class ShareExpiredError(Exception):
    """Raised when a share exists but is past its expiry time."""


async def create_share(
    db: AsyncSession,
    content: str,
    title: str | None = None,
    expires_in_days: int = 7,
    now: datetime | None = None,
) -> SharedNote:
    """Store a shared snapshot and bump the ``total_shares`` counter."""
    now = now or utc_now()

    share_id = uuid4().hex[:SHARE_ID_LENGTH]
    for _ in range(_MAX_ID_ATTEMPTS):
        if await db.get(SharedNote, share_id) is None:
            break
        share_id = uuid4().hex[:SHARE_ID_LENGTH]

    share = SharedNote(
        id=share_id,
        title=title or DEFAULT_SHARE_TITLE,
        content=content,
        views=0,
        created_at=now,
        expires_at=now + timedelta(days=expires_in_days),
    )
    db.add(share)
    await increment_statistic(db, StatisticKey.TOTAL_SHARES)
    await db.flush()
    logger.info("Created share %s (expires %s)", share_id, share.expires_at.isoformat())
    return share


async def get_share(db: AsyncSession, share_id: str, now: datetime | None = None) -> SharedNote:
    """Fetch a share and count the view.

    Raises:
        ShareNotFoundError: Unknown share id.
        ShareExpiredError: The share has expired (views are not counted).
    """
    share = await db.get(SharedNote, share_id)
    if share is None:
        raise ShareNotFoundError(share_id)

    now = now or utc_now()
    if ensure_utc(share.expires_at) < now:
        raise ShareExpiredError(share_id)

    share.views += 1
    await db.flush()
    return share
