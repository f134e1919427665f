# @TASK S3-T3.3 - NoteSync server HTTP client
# @TEST tests/test_note_client.py

"""Async HTTP client for the NoteSync server.

Every call maps failures onto the dispatch error taxonomy so the offline
write queue can decide whether to retry, back off or give up:

- transport errors, timeouts, 408 and 5xx → :class:`RetryableDispatchError`
- 429 → :class:`RateLimitedError` (``retryAfter`` body field or ``Retry-After`` header)
- any other 4xx → :class:`TerminalDispatchError`

Usage::

    async with NoteSyncClient("http://localhost:3000") as client:
        content_hash = await client.save_note({"id": "n1", "device_id": "device-0001", "content": "hi"})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from notesync.offline.errors import RateLimitedError, RetryableDispatchError, TerminalDispatchError

logger = logging.getLogger(__name__)

# Used when a 429 carries no usable hint.
_DEFAULT_RETRY_AFTER = 60.0


@dataclass
class SyncOutcome:
    """Parsed response of ``POST /api/sync/{device_id}``."""

    conflicts: list[dict] = field(default_factory=list)
    updates: int = 0
    server_notes: int = 0


def _retry_after(response: httpx.Response) -> float:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("retryAfter") is not None:
        try:
            return float(body["retryAfter"])
        except (TypeError, ValueError):
            pass
    header = response.headers.get("retry-after")
    if header:
        try:
            return float(header)
        except ValueError:
            pass
    return _DEFAULT_RETRY_AFTER


def raise_for_dispatch(response: httpx.Response) -> None:
    """Raise the dispatch error matching a non-2xx response."""
    code = response.status_code
    if code < 400:
        return
    description = f"{response.request.method} {response.request.url.path} returned {code}"
    if code == 429:
        raise RateLimitedError(_retry_after(response), description)
    if code == 408 or code >= 500:
        raise RetryableDispatchError(description, status_code=code)
    raise TerminalDispatchError(description, status_code=code)


class NoteSyncClient:
    """Thin async wrapper around the NoteSync REST API.

    Args:
        base_url: Server base URL (trailing slash is stripped).
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (e.g. ``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> NoteSyncClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(self, method: str, path: str, json: Any = None) -> httpx.Response:
        try:
            return await self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            logger.warning("NoteSync %s %s timed out", method, path)
            raise RetryableDispatchError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            logger.warning("NoteSync %s %s failed: %s", method, path, exc)
            raise RetryableDispatchError(f"{method} {path} failed: {exc}") from exc

    async def _request(self, method: str, path: str, json: Any = None) -> dict:
        response = await self._send(method, path, json=json)
        raise_for_dispatch(response)
        return response.json()

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    async def health(self) -> dict:
        return await self._request("GET", "/api/health")

    async def list_notes(self, device_id: str) -> list[dict]:
        data = await self._request("GET", f"/api/notes/{device_id}")
        return data.get("notes", [])

    async def save_note(self, note: dict) -> str:
        """Upsert a note; *note* must carry ``id``, ``device_id`` and ``content``.

        Returns:
            The server-computed content hash.
        """
        data = await self._request("POST", "/api/notes", json=note)
        return data["content_hash"]

    async def delete_note(self, device_id: str, note_id: str, missing_ok: bool = False) -> bool:
        """Delete a note.

        Returns:
            ``True`` if the note was deleted, ``False`` if it was already
            gone and *missing_ok* is set.
        """
        response = await self._send("DELETE", f"/api/notes/{device_id}/{note_id}")
        if response.status_code == 404 and missing_ok:
            logger.debug("Note %s already absent for device %s", note_id, device_id)
            return False
        raise_for_dispatch(response)
        return True

    async def sync_notes(
        self,
        device_id: str,
        notes: list[dict],
        last_sync: str | None = None,
    ) -> SyncOutcome:
        body: dict[str, Any] = {"notes": notes}
        if last_sync:
            body["last_sync"] = last_sync
        data = await self._request("POST", f"/api/sync/{device_id}", json=body)
        outcome = SyncOutcome(
            conflicts=data.get("conflicts", []),
            updates=data.get("updates", 0),
            server_notes=data.get("server_notes", 0),
        )
        if outcome.conflicts:
            logger.info("Sync for device %s reported %d conflicts", device_id, len(outcome.conflicts))
        return outcome
