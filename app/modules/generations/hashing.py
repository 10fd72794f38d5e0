from __future__ import annotations

import hashlib


def hash_text(text: str) -> str:
    """SHA-256 hex digest; lets us log about a source text without storing it."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
