"""OpenRouter chat-completions client for flashcard generation.

The model is asked for strict JSON; everything it returns is treated as
untrusted and checked before any proposal reaches a caller. A single bad
flashcard fails the whole batch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger


logger = get_logger(__name__)

MAX_PROPOSAL_SIDE_LENGTH = 5000


class OpenRouterError(Exception):
    """Raised when the AI service fails or returns something unusable."""


class OpenRouterTimeoutError(OpenRouterError):
    """Raised when the AI service does not answer within the timeout."""


@dataclass(frozen=True)
class OpenRouterConfig:
    api_key: str
    model: str
    site_url: str
    app_name: str
    base_url: str = "https://openrouter.ai/api/v1"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class FlashcardProposal:
    front: str
    back: str


def build_system_prompt(count: int) -> str:
    return (
        "You are a flashcard generation assistant. Your task is to create "
        "high-quality flashcards from the provided text.\n\n"
        "Rules:\n"
        f"1. Generate exactly {count} flashcards\n"
        "2. Each flashcard should have:\n"
        "   - Front: A concept, term, or question (max 200 characters)\n"
        "   - Back: A definition, explanation, or answer (max 500 characters)\n"
        "3. Focus on the most important concepts\n"
        "4. Make flashcards clear and concise\n"
        "5. Ensure each flashcard tests a single concept\n"
        "6. Always generate flashcards in the language of the source text\n"
        "7. Return ONLY valid JSON in this format:\n"
        "{\n"
        '  "flashcards": [\n'
        '    {"front": "concept", "back": "definition"},\n'
        "    ...\n"
        "  ]\n"
        "}"
    )


def parse_flashcards_response(
    data: Any, expected_count: int
) -> list[FlashcardProposal]:
    """Validate a chat-completions payload and extract the proposals."""
    choices = data.get("choices") if isinstance(data, dict) else None
    if (
        not isinstance(choices, list)
        or not choices
        or not isinstance(choices[0], dict)
        or not choices[0].get("message")
    ):
        raise OpenRouterError("Invalid OpenRouter response structure")

    message = choices[0]["message"]
    # A message without readable content fails as unparseable JSON
    content = message.get("content") if isinstance(message, dict) else None
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError) as e:
        raise OpenRouterError("Failed to parse OpenRouter response as JSON") from e

    cards = parsed.get("flashcards") if isinstance(parsed, dict) else None
    if not isinstance(cards, list):
        raise OpenRouterError("Invalid flashcards structure in response")

    proposals: list[FlashcardProposal] = []
    for card in cards:
        if not isinstance(card, dict) or not card.get("front") or not card.get("back"):
            raise OpenRouterError("Flashcard missing front or back")
        proposals.append(
            FlashcardProposal(
                front=str(card["front"]).strip()[:MAX_PROPOSAL_SIDE_LENGTH],
                back=str(card["back"]).strip()[:MAX_PROPOSAL_SIDE_LENGTH],
            )
        )

    if len(proposals) != expected_count:
        logger.info(
            f"OpenRouter returned {len(proposals)} flashcards, expected {expected_count}"
        )

    return proposals


class OpenRouterService:
    """Thin async wrapper around the OpenRouter chat-completions endpoint."""

    def __init__(
        self,
        config: OpenRouterConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._transport = transport

    @property
    def model(self) -> str:
        return self.config.model

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "HTTP-Referer": self.config.site_url,
            "X-Title": self.config.app_name,
            "Content-Type": "application/json",
        }

    async def generate_flashcards(
        self, source_text: str, count: int = 12
    ) -> list[FlashcardProposal]:
        """Ask the model for ``count`` flashcards about ``source_text``.

        Raises:
            OpenRouterTimeoutError: no answer within ``timeout_seconds``.
            OpenRouterError: transport failure, non-2xx status or a payload
                that fails validation.
        """
        payload = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(count)},
                {"role": "user", "content": source_text},
            ],
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/chat/completions", headers=self._headers(), json=payload
                )
        except httpx.TimeoutException as e:
            raise OpenRouterTimeoutError(
                "Request timeout - AI service took too long to respond"
            ) from e
        except httpx.HTTPError as e:
            raise OpenRouterError(f"HTTP error calling OpenRouter API: {e}") from e

        if response.is_error:
            raise OpenRouterError(
                f"OpenRouter API returned {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise OpenRouterError("Invalid OpenRouter response structure") from e

        return parse_flashcards_response(data, count)


def get_openrouter_service() -> OpenRouterService:
    """FastAPI dependency building the service from settings."""
    cfg = settings.openrouter
    return OpenRouterService(
        OpenRouterConfig(
            api_key=cfg.api_key or "",
            model=cfg.model,
            site_url=settings.app.site_url,
            app_name=settings.app.name,
            base_url=cfg.base_url,
            timeout_seconds=cfg.timeout_seconds,
        )
    )
