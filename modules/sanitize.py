"""Text cleanup for user- and model-supplied strings."""

from __future__ import annotations

import html
from typing import Optional

import bleach


def sanitize_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Sanitize free text before it is stored or shown in the queue UI.

    Strips surrounding whitespace, removes any HTML markup and truncates to
    ``max_length`` when given.

    Args:
        text: Raw input text
        max_length: Optional maximum length to enforce

    Returns:
        Sanitized text ("" for None or empty input)
    """
    if not text:
        return ""

    text = text.strip()
    text = bleach.clean(text, tags=[], strip=True)

    # bleach escapes bare ampersands and angle brackets; the API is JSON, not HTML
    text = html.unescape(text)

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text.strip()
