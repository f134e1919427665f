"""Bilingual message translations for API responses.

Usage:
    from notesync.utils.messages import msg
    msg("notes.not_found", lang)                # → "Note not found" or "노트를 찾을 수 없습니다"
    msg("sync.completed", lang, updates=2)      # → "Sync completed: 2 updates applied"
"""

from __future__ import annotations

_MESSAGES: dict[str, dict[str, str]] = {
    # Validation
    "validation.invalid_device_id": {
        "ko": "유효하지 않은 기기 ID입니다",
        "en": "Invalid device ID",
    },
    "validation.missing_fields": {
        "ko": "필수 항목이 누락되었습니다",
        "en": "Missing required fields",
    },
    "validation.invalid_sync_request": {
        "ko": "잘못된 동기화 요청입니다",
        "en": "Invalid sync request",
    },
    "validation.invalid_request": {
        "ko": "잘못된 요청입니다",
        "en": "Invalid request",
    },
    # Notes
    "notes.not_found": {
        "ko": "노트를 찾을 수 없습니다",
        "en": "Note not found",
    },
    # Sync
    "sync.completed": {
        "ko": "동기화 완료: {updates}건 반영",
        "en": "Sync completed: {updates} updates applied",
    },
    "sync.conflicts": {
        "ko": "{count}개 노트에서 충돌이 발생했습니다",
        "en": "{count} notes are in conflict",
    },
    # Sharing
    "share.content_required": {
        "ko": "내용을 입력해야 합니다",
        "en": "Content is required",
    },
    "share.not_found": {
        "ko": "공유된 노트를 찾을 수 없습니다",
        "en": "Shared note not found",
    },
    "share.expired": {
        "ko": "공유 기간이 만료된 노트입니다",
        "en": "This shared note has expired",
    },
    # Rate limiting
    "rate_limit.exceeded": {
        "ko": "요청이 너무 많습니다. 잠시 후 다시 시도하세요",
        "en": "Too many requests, please try again later",
    },
}


def msg(key: str, lang: str = "en", **kwargs: object) -> str:
    """Return a translated message for the given key and language.

    Args:
        key: Dot-separated message key (e.g. "notes.not_found").
        lang: Language code ("en" or "ko").
        **kwargs: Interpolation variables for the message template.

    Returns:
        Translated and formatted message string.
        Falls back to English if key not found for the requested language.
    """
    entry = _MESSAGES.get(key)
    if entry is None:
        return key

    template = entry.get(lang, entry.get("en", key))
    if kwargs:
        try:
            return template.format(**kwargs)
        except (KeyError, IndexError):
            return template
    return template
