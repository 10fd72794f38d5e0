"""Explicit authentication state for API clients.

One ``AuthContext`` is created by whoever owns the session (the CLI, a test)
and handed to every component that needs the token. Nothing is global.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class AuthContext:
    def __init__(self, token: Optional[str] = None, token_file: Optional[Path] = None):
        self._token = token
        self.token_file = Path(token_file) if token_file else None

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def load(self) -> "AuthContext":
        """Restore a token previously mirrored to ``token_file``."""
        if self._token is None and self.token_file and self.token_file.exists():
            self._token = self.token_file.read_text(encoding="utf-8").strip() or None
        return self

    def set_token(self, token: str) -> None:
        self._token = token
        if self.token_file:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            self.token_file.write_text(token, encoding="utf-8")

    def clear(self) -> None:
        self._token = None
        if self.token_file and self.token_file.exists():
            self.token_file.unlink()

    def authorization_headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}
