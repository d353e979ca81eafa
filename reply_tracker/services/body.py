"""
Plain-text body extraction from Gmail message payloads.
"""

import base64
import binascii
import re
from typing import Any

NO_READABLE_TEXT = "[No readable text body]"

_TAG = re.compile(r"<[^>]+>")


def decode_part_data(data: str) -> str:
    """Decode a Gmail body.data value (base64url, padding optional)."""
    if not data:
        return ""
    try:
        raw = base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))
    except (binascii.Error, ValueError):
        return ""
    return raw.decode("utf-8", errors="replace")


def strip_tags(html: str) -> str:
    """Remove markup tags. Entities are left as-is."""
    return _TAG.sub("", html or "")


def _find_text(part: dict[str, Any], mime_type: str) -> str:
    """Depth-first search for the first non-empty leaf of the given type."""
    if not isinstance(part, dict):
        return ""

    if part.get("mimeType") == mime_type:
        data = (part.get("body") or {}).get("data")
        text = decode_part_data(data) if data else ""
        if mime_type == "text/html":
            text = strip_tags(text)
        if text.strip():
            return text.strip()

    for sub in part.get("parts") or []:
        nested = _find_text(sub, mime_type)
        if nested:
            return nested
    return ""


def extract_reply_body(payload: dict[str, Any] | None) -> str:
    """
    Extract a single plain-text body from a message payload tree.

    Prefers the first text/plain leaf; falls back to the first text/html leaf
    with tags stripped.

    Args:
        payload: Gmail `payload` object (mimeType, body.data, nested parts)

    Returns:
        Body text, or NO_READABLE_TEXT when nothing readable is found
    """
    if not payload:
        return NO_READABLE_TEXT
    return (
        _find_text(payload, "text/plain")
        or _find_text(payload, "text/html")
        or NO_READABLE_TEXT
    )
