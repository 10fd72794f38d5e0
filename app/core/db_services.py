"""Database service classes for flashcards and AI generation records.

Every query is scoped to the owning user. A row that exists but belongs to
somebody else is reported exactly like a row that does not exist.
"""

from __future__ import annotations

from typing import Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from app.apis.flashcards.schemas import (
    BatchFlashcardItem,
    FlashcardListQuery,
    FlashcardRead,
    FlashcardWrite,
    SortField,
    SortOrder,
)
from app.apis.generations.schemas import GenerationRead
from app.core.db.schemas.flashcards import (
    Flashcard,
    FlashcardSource,
    Generation,
    GenerationErrorLog,
)
from app.core.logging import get_logger


logger = get_logger(__name__)


class FlashcardServiceError(Exception):
    """Raised when a flashcard operation fails for a non-domain reason."""


class FlashcardNotFoundError(FlashcardServiceError):
    """No flashcard with the given id is owned by the caller."""


class GenerationServiceError(Exception):
    """Raised when a generation record cannot be written or read."""


class GenerationNotFoundError(GenerationServiceError):
    """No generation with the given id is owned by the caller."""


class GenerationMetricsError(GenerationServiceError):
    """Accepted counts would exceed the number of generated proposals."""


def page_range(page: int, limit: int) -> tuple[int, int]:
    """Return the inclusive row range ``(start, end)`` for a 1-based page."""
    start = (page - 1) * limit
    return start, start + limit - 1


_SORT_COLUMNS = {
    SortField.CREATED_AT: Flashcard.created_at,
    SortField.UPDATED_AT: Flashcard.updated_at,
}


class FlashcardService:
    """Service for reading and writing a user's flashcards."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_flashcards(
        self, user_id: int, query: FlashcardListQuery
    ) -> tuple[list[FlashcardRead], int]:
        """Return one page of the user's flashcards and the filtered total."""
        filters = [Flashcard.user_id == user_id]
        if query.search:
            filters.append(
                or_(
                    Flashcard.front.icontains(query.search, autoescape=True),
                    Flashcard.back.icontains(query.search, autoescape=True),
                )
            )
        if query.source is not None:
            filters.append(Flashcard.source == query.source)

        sort_column = _SORT_COLUMNS[query.sort]
        if query.order == SortOrder.ASC:
            ordering = (sort_column.asc(), Flashcard.id.asc())
        else:
            ordering = (sort_column.desc(), Flashcard.id.desc())

        start, end = page_range(query.page, query.limit)

        try:
            total = await self.session.scalar(
                select(func.count()).select_from(Flashcard).where(*filters)
            )
            rows = await self.session.execute(
                select(Flashcard)
                .where(*filters)
                .order_by(*ordering)
                .offset(start)
                .limit(end - start + 1)
            )
        except SQLAlchemyError as e:
            logger.error(f"Listing flashcards for user {user_id} failed: {e}")
            raise FlashcardServiceError("Failed to list flashcards") from e

        items = [FlashcardRead.model_validate(c) for c in rows.scalars().all()]
        return items, int(total or 0)

    async def create_manual_flashcard(
        self, user_id: int, data: FlashcardWrite
    ) -> FlashcardRead:
        card = Flashcard(
            user_id=user_id,
            front=data.front,
            back=data.back,
            source=FlashcardSource.MANUAL,
            generation_id=None,
        )
        self.session.add(card)
        await self.session.commit()
        return FlashcardRead.model_validate(card)

    async def _get_owned(self, user_id: int, flashcard_id: int) -> Flashcard:
        result = await self.session.execute(
            select(Flashcard).where(
                Flashcard.id == flashcard_id, Flashcard.user_id == user_id
            )
        )
        card = result.scalar_one_or_none()
        if card is None:
            raise FlashcardNotFoundError("Flashcard not found or access denied")
        return card

    async def get_flashcard(self, user_id: int, flashcard_id: int) -> FlashcardRead:
        card = await self._get_owned(user_id, flashcard_id)
        return FlashcardRead.model_validate(card)

    async def update_flashcard(
        self, user_id: int, flashcard_id: int, data: FlashcardWrite
    ) -> FlashcardRead:
        """Replace front and back; source and generation link never change."""
        card = await self._get_owned(user_id, flashcard_id)
        card.front = data.front
        card.back = data.back
        await self.session.commit()
        return FlashcardRead.model_validate(card)

    async def delete_flashcard(self, user_id: int, flashcard_id: int) -> None:
        result = await self.session.execute(
            delete(Flashcard)
            .where(Flashcard.id == flashcard_id, Flashcard.user_id == user_id)
            .returning(Flashcard.id)
        )
        deleted = result.scalars().all()
        if not deleted:
            await self.session.rollback()
            raise FlashcardNotFoundError("Flashcard not found or access denied")
        await self.session.commit()

    async def create_batch_flashcards(
        self,
        user_id: int,
        generation_id: int,
        items: Sequence[BatchFlashcardItem],
    ) -> list[FlashcardRead]:
        """Insert accepted AI proposals in a single transaction."""
        cards = [
            Flashcard(
                user_id=user_id,
                front=item.front,
                back=item.back,
                source=FlashcardSource.AI,
                generation_id=generation_id,
            )
            for item in items
        ]
        self.session.add_all(cards)
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise FlashcardServiceError("Failed to create flashcards") from e
        return [FlashcardRead.model_validate(c) for c in cards]


class GenerationService:
    """Service for generation records and the generation error log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_generation(
        self,
        *,
        user_id: int,
        model: str,
        generated_count: int,
        source_text_hash: str,
        source_text_length: int,
        generation_duration: int,
    ) -> Generation:
        generation = Generation(
            user_id=user_id,
            model=model,
            generated_count=generated_count,
            accepted_unedited_count=None,
            accepted_edited_count=None,
            source_text_hash=source_text_hash,
            source_text_length=source_text_length,
            generation_duration=generation_duration,
        )
        self.session.add(generation)
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise GenerationServiceError(f"Failed to create generation: {e}") from e
        return generation

    async def get_generation(
        self, user_id: int, generation_id: int
    ) -> Optional[Generation]:
        result = await self.session.execute(
            select(Generation).where(
                Generation.id == generation_id, Generation.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def get_generation_read(
        self, user_id: int, generation_id: int
    ) -> GenerationRead:
        generation = await self.get_generation(user_id, generation_id)
        if generation is None:
            raise GenerationNotFoundError("Generation not found")
        return GenerationRead.model_validate(generation)

    async def update_generation_metrics(
        self,
        user_id: int,
        generation_id: int,
        *,
        accepted_unedited_count: Optional[int] = None,
        accepted_edited_count: Optional[int] = None,
    ) -> GenerationRead:
        """Record how many proposals were accepted as-is and after editing."""
        generation = await self.get_generation(user_id, generation_id)
        if generation is None:
            raise GenerationNotFoundError("Generation not found")

        unedited = (
            accepted_unedited_count
            if accepted_unedited_count is not None
            else generation.accepted_unedited_count
        )
        edited = (
            accepted_edited_count
            if accepted_edited_count is not None
            else generation.accepted_edited_count
        )
        if (unedited or 0) + (edited or 0) > generation.generated_count:
            raise GenerationMetricsError(
                f"Accepted counts ({(unedited or 0) + (edited or 0)}) exceed "
                f"generated count ({generation.generated_count})"
            )

        generation.accepted_unedited_count = unedited
        generation.accepted_edited_count = edited
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise GenerationServiceError(
                f"Failed to update generation metrics: {e}"
            ) from e
        return GenerationRead.model_validate(generation)

    async def log_error(
        self,
        *,
        user_id: int,
        model: str,
        source_text_hash: str,
        source_text_length: int,
        error_code: str,
        error_message: str,
    ) -> None:
        """Append to the generation error log. Never raises."""
        entry = GenerationErrorLog(
            user_id=user_id,
            model=model,
            source_text_hash=source_text_hash,
            source_text_length=source_text_length,
            error_code=error_code,
            error_message=error_message,
        )
        try:
            self.session.add(entry)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning(f"Could not write generation error log ({error_code}): {e}")
