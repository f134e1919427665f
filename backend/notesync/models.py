# @TASK S0-T0.5 - Note, shared note and statistics tables

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from notesync.constants import DEFAULT_NOTE_TITLE, DEFAULT_SHARE_TITLE
from notesync.database import Base


class Note(Base):
    """A note owned by one device.

    Note ids are chosen by the client and are only unique within the
    owning device's namespace, so ``(note_id, device_id)`` is the natural key.
    """

    __tablename__ = "notes"

    pk: Mapped[int] = mapped_column(primary_key=True)
    note_id: Mapped[str] = mapped_column(String(255))
    device_id: Mapped[str] = mapped_column(String(255), index=True)
    title: Mapped[str] = mapped_column(String(500), default=DEFAULT_NOTE_TITLE)
    content: Mapped[str] = mapped_column(Text, default="")
    content_hash: Mapped[str] = mapped_column(String(64))  # sha256 hex of content
    is_encrypted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("note_id", "device_id", name="uq_notes_note_device"),
        Index("idx_notes_updated_at", "updated_at"),
    )


class SharedNote(Base):
    """A read-only public snapshot of a note, reachable by share id until it expires."""

    __tablename__ = "shared_notes"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), default=DEFAULT_SHARE_TITLE)
    content: Mapped[str] = mapped_column(Text)
    views: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (Index("idx_shared_notes_expires_at", "expires_at"),)


class ServerStatistic(Base):
    """Server-wide counters stored as key/value rows."""

    __tablename__ = "server_statistics"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
