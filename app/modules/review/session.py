"""Study session state machine.

Cards are loaded once up front; after that the session never touches the
network. ``next`` on the last card completes the session instead of moving out
of bounds, and ``restart`` from the completion screen goes back to the first
card.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Protocol

from app.core.logging import get_logger


logger = get_logger(__name__)


class ReviewState(str, Enum):
    LOADING = "loading"
    STUDYING = "studying"
    COMPLETED = "completed"
    EXITED = "exited"
    EMPTY = "empty"


class CardFetcher(Protocol):
    async def fetch_all_flashcards(self) -> list[dict[str, Any]]: ...


class ReviewSession:
    def __init__(self) -> None:
        self.cards: list[dict[str, Any]] = []
        self.state = ReviewState.LOADING
        self.index = 0
        self.flipped = False

    def load(self, cards: list[dict[str, Any]]) -> None:
        if self.state is not ReviewState.LOADING:
            raise RuntimeError(f"Cannot load cards in state {self.state.value}")
        self.cards = list(cards)
        if not self.cards:
            self.state = ReviewState.EMPTY
            return
        self.state = ReviewState.STUDYING
        self.index = 0
        self.flipped = False

    @property
    def is_studying(self) -> bool:
        return self.state is ReviewState.STUDYING

    @property
    def current_card(self) -> Optional[dict[str, Any]]:
        if not self.is_studying:
            return None
        return self.cards[self.index]

    @property
    def position(self) -> tuple[int, int]:
        """1-based position and total, as shown to the user."""
        return self.index + 1, len(self.cards)

    def flip(self) -> None:
        if self.is_studying:
            self.flipped = not self.flipped

    def next(self) -> None:
        if not self.is_studying:
            return
        if self.index >= len(self.cards) - 1:
            self.state = ReviewState.COMPLETED
            self.flipped = False
            return
        self.index += 1
        self.flipped = False

    def previous(self) -> None:
        if not self.is_studying or self.index == 0:
            return
        self.index -= 1
        self.flipped = False

    def restart(self) -> None:
        if self.state is not ReviewState.COMPLETED:
            return
        self.state = ReviewState.STUDYING
        self.index = 0
        self.flipped = False

    def exit(self) -> None:
        self.state = ReviewState.EXITED


async def load_review_session(client: CardFetcher) -> ReviewSession:
    session = ReviewSession()
    session.load(await client.fetch_all_flashcards())
    logger.info(f"Review session loaded with {len(session.cards)} cards")
    return session
