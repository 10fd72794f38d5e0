"""Async HTTP client for the flashcards API."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from app.core.logging import get_logger
from app.modules.client.auth import AuthContext


logger = get_logger(__name__)

MAX_PAGE_SIZE = 100
# Upper bound on pages fetched by fetch_all_flashcards
DEFAULT_MAX_PAGES = 100


class ApiClientError(Exception):
    """Non-2xx response from the API."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        error: Optional[str] = None,
        details: Optional[dict[str, list[str]]] = None,
    ) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.error = error
        self.message = message
        self.details = details or {}


def build_query(**params: Any) -> dict[str, Any]:
    """Drop unset parameters so the server applies its defaults."""
    query: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        query[key] = getattr(value, "value", value)
    return query


class FlashcardsApiClient:
    """Wraps every endpoint the study front ends use.

    Use as an async context manager; ``transport`` lets tests talk to the ASGI
    app directly.
    """

    def __init__(
        self,
        base_url: str,
        auth: AuthContext,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0,
    ) -> None:
        self.base_url = base_url
        self.auth = auth
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "FlashcardsApiClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url, transport=self._transport, timeout=self._timeout
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("FlashcardsApiClient used outside 'async with'")
        return self._client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**self.auth.authorization_headers(), **kwargs.pop("headers", {})}
        response = await self.client.request(method, url, headers=headers, **kwargs)
        if response.is_error:
            raise self._error_from(response)
        return response

    @staticmethod
    def _error_from(response: httpx.Response) -> ApiClientError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        detail = body.get("detail")
        message = body.get("message") or (detail if isinstance(detail, str) else None)
        return ApiClientError(
            response.status_code,
            message or response.reason_phrase or "Request failed",
            error=body.get("error"),
            details=body.get("details"),
        )

    # auth

    async def register(self, email: str, password: str) -> dict[str, Any]:
        response = await self._request(
            "POST", "/api/auth/register", json={"email": email, "password": password}
        )
        return response.json()

    async def login(self, email: str, password: str) -> str:
        response = await self._request(
            "POST",
            "/api/auth/jwt/login",
            data={"username": email, "password": password},
        )
        token = response.json()["access_token"]
        self.auth.set_token(token)
        return token

    async def logout(self) -> None:
        try:
            if self.auth.is_authenticated:
                await self._request("POST", "/api/auth/logout")
        finally:
            self.auth.clear()

    # flashcards

    async def create_flashcard(self, front: str, back: str) -> dict[str, Any]:
        response = await self._request(
            "POST", "/api/flashcards", json={"front": front, "back": back}
        )
        return response.json()["data"]

    async def list_flashcards(
        self,
        *,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        source: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> dict[str, Any]:
        params = build_query(
            page=page, limit=limit, search=search, source=source, sort=sort, order=order
        )
        response = await self._request("GET", "/api/flashcards", params=params)
        return response.json()

    async def get_flashcard(self, flashcard_id: int) -> dict[str, Any]:
        response = await self._request("GET", f"/api/flashcards/{flashcard_id}")
        return response.json()["data"]

    async def update_flashcard(
        self, flashcard_id: int, front: str, back: str
    ) -> dict[str, Any]:
        response = await self._request(
            "PUT",
            f"/api/flashcards/{flashcard_id}",
            json={"front": front, "back": back},
        )
        return response.json()["data"]

    async def delete_flashcard(self, flashcard_id: int) -> None:
        await self._request("DELETE", f"/api/flashcards/{flashcard_id}")

    async def create_batch(self, command: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", "/api/flashcards/batch", json=command)
        return response.json()["data"]

    async def generate(self, source_text: str) -> dict[str, Any]:
        response = await self._request(
            "POST", "/api/generations", json={"source_text": source_text}
        )
        return response.json()["data"]

    async def fetch_all_flashcards(
        self, *, max_pages: int = DEFAULT_MAX_PAGES
    ) -> list[dict[str, Any]]:
        """Walk every page oldest-first, one request at a time."""
        cards: list[dict[str, Any]] = []
        page = 1
        while True:
            body = await self.list_flashcards(
                page=page, limit=MAX_PAGE_SIZE, sort="created_at", order="asc"
            )
            cards.extend(body.get("data") or [])
            if not (body.get("pagination") or {}).get("has_next"):
                break
            page += 1
            if page > max_pages:
                logger.warning(f"Stopped after {max_pages} pages of flashcards")
                break
        return cards

    async def delete_all_flashcards(self) -> int:
        cards = await self.fetch_all_flashcards()
        for card in cards:
            await self.delete_flashcard(card["id"])
        return len(cards)
