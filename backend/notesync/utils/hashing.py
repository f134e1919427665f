"""Content hashing for cheap change detection."""

import hashlib


def content_hash(content: str) -> str:
    """Return the SHA-256 hex digest of note content (UTF-8 encoded)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
