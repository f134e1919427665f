"""Internationalization utilities for the NoteSync backend.

Provides language detection from HTTP Accept-Language header.
"""

from __future__ import annotations

from fastapi import Request

DEFAULT_LANGUAGE = "en"


def get_language(request: Request) -> str:
    """Extract preferred language from the Accept-Language header.

    Returns 'en' or 'ko'. Defaults to 'en' if header is missing
    or contains an unsupported language.
    """
    header = request.headers.get("accept-language", DEFAULT_LANGUAGE)
    lang = header.split(",")[0].strip().lower()
    if lang.startswith("ko"):
        return "ko"
    return "en"
