"""Request/response schemas shared by the note and sync routers."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

from notesync.utils.datetime_utils import datetime_from_iso, ensure_utc


def _parse_timestamp(value: Any) -> datetime | None:
    """Accept ISO-8601 strings (incl. ``Z`` and date-only) or datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        try:
            return datetime_from_iso(value)
        except ValueError as exc:
            raise ValueError(f"invalid ISO-8601 timestamp: {value!r}") from exc
    raise ValueError("timestamp must be an ISO-8601 string")


Timestamp = Annotated[datetime | None, BeforeValidator(_parse_timestamp)]


class NotePayload(BaseModel):
    """Fields every client-side note carries."""

    id: str = Field(min_length=1)
    content: str
    title: str | None = None
    created_at: Timestamp = None
    updated_at: Timestamp = None
    is_encrypted: bool | None = None


class NoteOut(BaseModel):
    """A stored note as returned by the server."""

    id: str
    device_id: str
    title: str
    content: str
    content_hash: str
    created_at: str | None = None
    updated_at: str | None = None
    is_encrypted: bool = False
