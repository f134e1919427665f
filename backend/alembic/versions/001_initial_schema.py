# @TASK S0-T0.5 - Initial schema: notes, shared notes, statistics

"""Create notes, shared_notes and server_statistics tables.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply schema migrations."""
    op.create_table(
        "notes",
        sa.Column("pk", sa.Integer, nullable=False),
        sa.Column("note_id", sa.String(255), nullable=False),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("title", sa.String(500), nullable=False, server_default="Untitled Note"),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("is_encrypted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("pk"),
        sa.UniqueConstraint("note_id", "device_id", name="uq_notes_note_device"),
    )
    op.create_index("ix_notes_device_id", "notes", ["device_id"])
    op.create_index("idx_notes_updated_at", "notes", ["updated_at"])

    op.create_table(
        "shared_notes",
        sa.Column("id", sa.String(16), nullable=False),
        sa.Column("title", sa.String(500), nullable=False, server_default="Shared Note"),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("views", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_shared_notes_expires_at", "shared_notes", ["expires_at"])

    op.create_table(
        "server_statistics",
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """Revert schema migrations."""
    op.drop_table("server_statistics")
    op.drop_index("idx_shared_notes_expires_at", table_name="shared_notes")
    op.drop_table("shared_notes")
    op.drop_index("idx_notes_updated_at", table_name="notes")
    op.drop_index("ix_notes_device_id", table_name="notes")
    op.drop_table("notes")
