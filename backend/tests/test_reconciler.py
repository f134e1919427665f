# @TASK S1-T1.2 - Reconciler tests
# @TEST tests/test_reconciler.py

"""Tests for note reconciliation (create / update / conflict / unchanged)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from conftest import DEVICE_A, DEVICE_B
from notesync.constants import SyncAction
from notesync.models import Note
from notesync.services.note_store import (
    InvalidDeviceIdError,
    get_note,
    get_statistics,
    list_device_notes,
    save_note,
)
from notesync.services.reconciler import ClientNote, SyncReconciler, classify
from notesync.utils.hashing import content_hash

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
EARLIER = T0 - timedelta(hours=1)
LATER = T0 + timedelta(hours=1)


def _server_note(content: str = "server", updated_at: datetime | None = T0) -> Note:
    return Note(
        note_id="n1",
        device_id=DEVICE_A,
        title="t",
        content=content,
        content_hash=content_hash(content),
        updated_at=updated_at,
    )


class TestClassify:
    """Pure decision table, no database."""

    def test_absent_on_server_creates(self):
        assert classify(None, ClientNote(id="n1", content="x")) is SyncAction.CREATE

    def test_equal_hash_is_unchanged_regardless_of_timestamps(self):
        server = _server_note("same", updated_at=LATER)
        client = ClientNote(id="n1", content="same", updated_at=EARLIER)
        assert classify(server, client) is SyncAction.UNCHANGED

    def test_newer_server_is_conflict(self):
        server = _server_note("server", updated_at=LATER)
        client = ClientNote(id="n1", content="client", updated_at=EARLIER)
        assert classify(server, client) is SyncAction.CONFLICT

    def test_newer_client_is_update(self):
        server = _server_note("server", updated_at=EARLIER)
        client = ClientNote(id="n1", content="client", updated_at=LATER)
        assert classify(server, client) is SyncAction.UPDATE

    def test_equal_timestamps_favour_client(self):
        server = _server_note("server", updated_at=T0)
        client = ClientNote(id="n1", content="client", updated_at=T0)
        assert classify(server, client) is SyncAction.UPDATE

    def test_missing_client_timestamp_is_update(self):
        server = _server_note("server", updated_at=LATER)
        client = ClientNote(id="n1", content="client")
        assert classify(server, client) is SyncAction.UPDATE

    def test_naive_server_timestamp_is_treated_as_utc(self):
        server = _server_note("server", updated_at=LATER.replace(tzinfo=None))
        client = ClientNote(id="n1", content="client", updated_at=EARLIER)
        assert classify(server, client) is SyncAction.CONFLICT

    def test_client_supplied_hash_is_ignored(self):
        """A stale or forged client hash cannot mask a content change."""
        server = _server_note("server", updated_at=EARLIER)
        client = ClientNote(id="n1", content="client", content_hash=content_hash("server"), updated_at=LATER)
        assert classify(server, client) is SyncAction.UPDATE


class TestSyncReconciler:
    @pytest.mark.asyncio
    async def test_creates_missing_notes_with_server_hash(self, test_db):
        reconciler = SyncReconciler(test_db)
        result = await reconciler.reconcile(
            DEVICE_A,
            [ClientNote(id="n1", content="one", content_hash="bogus"), ClientNote(id="n2", content="two")],
        )

        assert result.created == 2
        assert result.updates_applied == 2
        assert result.conflicts == []
        assert result.server_notes_count == 0

        note = await get_note(test_db, DEVICE_A, "n1")
        assert note.content_hash == content_hash("one")
        assert (await get_statistics(test_db))["total_notes"] == 2

    @pytest.mark.asyncio
    async def test_identical_content_is_idempotent(self, test_db):
        await save_note(test_db, note_id="n1", device_id=DEVICE_A, content="same", updated_at=T0)
        before = (await get_note(test_db, DEVICE_A, "n1")).updated_at

        result = await SyncReconciler(test_db).reconcile(
            DEVICE_A, [ClientNote(id="n1", content="same", updated_at=LATER)]
        )

        assert result.unchanged == 1
        assert result.updates_applied == 0
        assert result.server_notes_count == 1
        assert (await get_note(test_db, DEVICE_A, "n1")).updated_at == before

    @pytest.mark.asyncio
    async def test_conflict_leaves_server_note_untouched(self, test_db):
        await save_note(test_db, note_id="n1", device_id=DEVICE_A, content="server", updated_at=LATER)

        result = await SyncReconciler(test_db).reconcile(
            DEVICE_A, [ClientNote(id="n1", content="client", updated_at=EARLIER)]
        )

        assert result.updates_applied == 0
        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert conflict.id == "n1"
        assert conflict.server_version["content"] == "server"
        assert conflict.server_version["content_hash"] == content_hash("server")
        assert conflict.client_version["content"] == "client"

        note = await get_note(test_db, DEVICE_A, "n1")
        assert note.content == "server"

    @pytest.mark.asyncio
    async def test_newer_client_overwrites_and_rehashes(self, test_db):
        await save_note(test_db, note_id="n1", device_id=DEVICE_A, content="old", title="Keep", updated_at=EARLIER)

        result = await SyncReconciler(test_db).reconcile(
            DEVICE_A, [ClientNote(id="n1", content="new", updated_at=LATER)]
        )

        assert result.updated == 1
        note = await get_note(test_db, DEVICE_A, "n1")
        assert note.content == "new"
        assert note.content_hash == content_hash("new")
        assert note.title == "Keep"

    @pytest.mark.asyncio
    async def test_notes_of_other_devices_are_not_visible(self, test_db):
        await save_note(test_db, note_id="n1", device_id=DEVICE_B, content="b", updated_at=LATER)

        result = await SyncReconciler(test_db).reconcile(
            DEVICE_A, [ClientNote(id="n1", content="a", updated_at=EARLIER)]
        )

        assert result.created == 1
        assert result.conflicts == []
        assert (await get_note(test_db, DEVICE_B, "n1")).content == "b"

    @pytest.mark.asyncio
    async def test_duplicate_id_compares_against_first_occurrence(self, test_db):
        result = await SyncReconciler(test_db).reconcile(
            DEVICE_A,
            [
                ClientNote(id="n1", content="first", updated_at=LATER),
                ClientNote(id="n1", content="second", updated_at=EARLIER),
            ],
        )

        assert result.created == 1
        assert len(result.conflicts) == 1
        assert result.conflicts[0].server_version["content"] == "first"
        assert len(await list_device_notes(test_db, DEVICE_A)) == 1

    @pytest.mark.asyncio
    async def test_mixed_batch_counts(self, test_db):
        await save_note(test_db, note_id="same", device_id=DEVICE_A, content="s", updated_at=T0)
        await save_note(test_db, note_id="stale", device_id=DEVICE_A, content="srv", updated_at=LATER)
        await save_note(test_db, note_id="fresh", device_id=DEVICE_A, content="srv", updated_at=EARLIER)

        result = await SyncReconciler(test_db).reconcile(
            DEVICE_A,
            [
                ClientNote(id="same", content="s"),
                ClientNote(id="stale", content="cli", updated_at=T0),
                ClientNote(id="fresh", content="cli", updated_at=T0),
                ClientNote(id="brand-new", content="cli"),
            ],
        )

        assert (result.created, result.updated, result.unchanged) == (1, 1, 1)
        assert [c.id for c in result.conflicts] == ["stale"]
        assert result.server_notes_count == 3

    @pytest.mark.asyncio
    async def test_empty_batch(self, test_db):
        result = await SyncReconciler(test_db).reconcile(DEVICE_A, [])
        assert result.updates_applied == 0
        assert result.server_notes_count == 0

    @pytest.mark.asyncio
    async def test_invalid_device_id(self, test_db):
        with pytest.raises(InvalidDeviceIdError):
            await SyncReconciler(test_db).reconcile("short", [ClientNote(id="n1", content="x")])
