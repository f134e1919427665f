# @TASK S2-T2.3 - Share API tests
# @TEST tests/test_api_share.py

"""Tests for public note shares and server statistics."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient

from notesync.services.share_service import (
    ShareExpiredError,
    ShareNotFoundError,
    create_share,
    get_share,
)


class TestShareService:
    @pytest.mark.asyncio
    async def test_create_defaults(self, test_db):
        now = datetime(2024, 1, 1, tzinfo=UTC)
        share = await create_share(test_db, "text", now=now)

        assert len(share.id) == 8
        assert share.title == "Shared Note"
        assert share.views == 0
        assert share.expires_at == now + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_get_counts_views(self, test_db):
        share = await create_share(test_db, "text")
        await get_share(test_db, share.id)
        fetched = await get_share(test_db, share.id)
        assert fetched.views == 2

    @pytest.mark.asyncio
    async def test_expired_share(self, test_db):
        created = datetime(2024, 1, 1, tzinfo=UTC)
        share = await create_share(test_db, "text", expires_in_days=1, now=created)

        with pytest.raises(ShareExpiredError):
            await get_share(test_db, share.id, now=created + timedelta(days=2))
        assert share.views == 0

    @pytest.mark.asyncio
    async def test_unknown_share(self, test_db):
        with pytest.raises(ShareNotFoundError):
            await get_share(test_db, "missing0")


class TestShareEndpoints:
    @pytest.mark.asyncio
    async def test_create_and_read(self, test_client: AsyncClient):
        resp = await test_client.post("/api/share", json={"content": "hello world", "title": "Hi", "expires_in": 3})
        assert resp.status_code == 200
        created = resp.json()
        assert created["success"] is True
        share_id = created["share_id"]

        resp = await test_client.get(f"/api/share/{share_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == share_id
        assert data["title"] == "Hi"
        assert data["content"] == "hello world"
        assert data["views"] == 1
        assert data["expires_at"] == created["expires_at"]

    @pytest.mark.asyncio
    async def test_content_required(self, test_client: AsyncClient):
        resp = await test_client.post("/api/share", json={"title": "empty"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Content is required"

    @pytest.mark.asyncio
    async def test_unknown_share_is_404(self, test_client: AsyncClient):
        resp = await test_client.get("/api/share/deadbeef")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Shared note not found"

    @pytest.mark.asyncio
    async def test_expired_share_is_410(self, test_client: AsyncClient, test_db):
        share = await create_share(test_db, "old", expires_in_days=1, now=datetime.now(UTC) - timedelta(days=2))

        resp = await test_client.get(f"/api/share/{share.id}")
        assert resp.status_code == 410
        assert resp.json()["detail"] == "This shared note has expired"


class TestStatistics:
    @pytest.mark.asyncio
    async def test_counters_start_at_zero(self, test_client: AsyncClient):
        resp = await test_client.get("/api/statistics")
        assert resp.status_code == 200
        assert resp.json() == {"total_notes": 0, "total_shares": 0}

    @pytest.mark.asyncio
    async def test_shares_are_counted(self, test_client: AsyncClient):
        await test_client.post("/api/share", json={"content": "a"})
        await test_client.post("/api/share", json={"content": "b"})

        stats = (await test_client.get("/api/statistics")).json()
        assert stats["total_shares"] == 2
