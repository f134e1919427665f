# @TASK S2-T2.2 - Sync API tests
# @TEST tests/test_api_sync.py

"""Tests for POST /api/sync/{device_id}."""

from __future__ import annotations

import asyncio

import pytest
from httpx import AsyncClient

from conftest import DEVICE_A, make_note
from notesync.utils.hashing import content_hash


async def _sync(client: AsyncClient, notes: list[dict], device_id: str = DEVICE_A, **extra):
    return await client.post(f"/api/sync/{device_id}", json={"notes": notes, **extra})


class TestSyncEndpoint:
    @pytest.mark.asyncio
    async def test_response_shape_for_new_notes(self, test_client: AsyncClient):
        resp = await _sync(test_client, [make_note("n1", "a"), make_note("n2", "b")], last_sync="2024-01-01T00:00:00Z")

        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "conflicts": [],
            "updates": 2,
            "server_notes": 0,
            "message": "Sync completed: 2 updates applied",
        }

    @pytest.mark.asyncio
    async def test_second_sync_is_a_no_op(self, test_client: AsyncClient):
        notes = [make_note("n1", "a", updated_at="2024-01-01T00:00:00Z")]
        await _sync(test_client, notes)

        resp = await _sync(test_client, notes)
        data = resp.json()
        assert data["updates"] == 0
        assert data["conflicts"] == []
        assert data["server_notes"] == 1

    @pytest.mark.asyncio
    async def test_conflict_reports_both_versions(self, test_client: AsyncClient):
        await test_client.post(
            "/api/notes",
            json={**make_note("n1", "server copy", updated_at="2024-06-01T00:00:00Z"), "device_id": DEVICE_A},
        )

        resp = await _sync(test_client, [make_note("n1", "stale edit", updated_at="2024-05-01T00:00:00Z")])

        data = resp.json()
        assert data["updates"] == 0
        assert len(data["conflicts"]) == 1
        conflict = data["conflicts"][0]
        assert conflict["id"] == "n1"
        assert conflict["server_version"]["content"] == "server copy"
        assert conflict["server_version"]["content_hash"] == content_hash("server copy")
        assert conflict["client_version"]["content"] == "stale edit"
        assert data["message"] == "1 notes are in conflict"

        stored = (await test_client.get(f"/api/notes/{DEVICE_A}")).json()["notes"][0]
        assert stored["content"] == "server copy"

    @pytest.mark.asyncio
    async def test_newer_client_overwrites(self, test_client: AsyncClient):
        await _sync(test_client, [make_note("n1", "v1", updated_at="2024-01-01T00:00:00Z")])
        resp = await _sync(test_client, [make_note("n1", "v2", updated_at="2024-02-01T00:00:00Z")])

        assert resp.json()["updates"] == 1
        stored = (await test_client.get(f"/api/notes/{DEVICE_A}")).json()["notes"][0]
        assert stored["content"] == "v2"
        assert stored["content_hash"] == content_hash("v2")

    @pytest.mark.asyncio
    async def test_malformed_note_rejects_whole_batch(self, test_client: AsyncClient):
        resp = await _sync(test_client, [make_note("good", "fine"), {"id": "bad"}])

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid sync request"
        assert (await test_client.get(f"/api/notes/{DEVICE_A}")).json()["count"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"notes": "nope"}, {"notes": [{"content": "no id"}]}])
    async def test_invalid_bodies(self, test_client: AsyncClient, body):
        resp = await test_client.post(f"/api/sync/{DEVICE_A}", json=body)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_short_device_id(self, test_client: AsyncClient):
        resp = await _sync(test_client, [make_note()], device_id="tiny")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid device ID"

    @pytest.mark.asyncio
    async def test_concurrent_syncs_for_one_device_create_once(self, test_client: AsyncClient):
        notes = [make_note("n1", "same")]
        responses = await asyncio.gather(*(_sync(test_client, notes) for _ in range(3)))

        assert all(r.status_code == 200 for r in responses)
        assert sum(r.json()["updates"] for r in responses) == 1
        stats = (await test_client.get("/api/statistics")).json()
        assert stats["total_notes"] == 1

    @pytest.mark.asyncio
    async def test_message_follows_accept_language(self, test_client: AsyncClient):
        resp = await test_client.post(
            f"/api/sync/{DEVICE_A}",
            json={"notes": [make_note()]},
            headers={"Accept-Language": "ko-KR,ko;q=0.9"},
        )
        assert resp.json()["message"] == "동기화 완료: 1건 반영"
