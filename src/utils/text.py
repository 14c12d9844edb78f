"""Small text helpers shared by the ingestion stages."""

from __future__ import annotations

PREVIEW_LENGTH = 500

# Embedding APIs reject very large inputs; 30 KB of UTF-8 stays well
# under every provider limit we target.
MAX_EMBED_BYTES = 30_000


def build_preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    """Return the first *length* characters of *content*."""
    return content[:length]


def truncate_utf8(text: str, max_bytes: int = MAX_EMBED_BYTES) -> str:
    """Cut *text* so its UTF-8 encoding is at most *max_bytes* bytes.

    Never splits a multi-byte character; partial trailing bytes are
    dropped.
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")
