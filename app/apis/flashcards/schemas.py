from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.core.db.schemas.flashcards import FlashcardSource


MAX_SIDE_LENGTH = 5000
MAX_BATCH_SIZE = 50


class SortField(str, enum.Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class FlashcardWrite(BaseModel):
    """Body of POST /flashcards and PUT /flashcards/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    front: str = Field(..., min_length=1, max_length=MAX_SIDE_LENGTH)
    back: str = Field(..., min_length=1, max_length=MAX_SIDE_LENGTH)


class BatchFlashcardItem(FlashcardWrite):
    edited: bool = Field(..., description="True when the AI proposal was modified")


class BatchFlashcardsCreate(BaseModel):
    flashcards: list[BatchFlashcardItem] = Field(
        ..., min_length=1, max_length=MAX_BATCH_SIZE
    )
    generation_id: int = Field(..., gt=0)


class FlashcardListQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=30, ge=1, le=100)
    search: str | None = Field(default=None, max_length=500)
    source: FlashcardSource | None = None
    sort: SortField = SortField.CREATED_AT
    order: SortOrder = SortOrder.DESC


class FlashcardRead(BaseModel):
    """Flashcard as returned to clients; the owner column is never included."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    front: str
    back: str
    source: FlashcardSource
    generation_id: int | None = None
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class FlashcardResponse(BaseModel):
    data: FlashcardRead


class FlashcardListResponse(BaseModel):
    data: list[FlashcardRead]
    pagination: Pagination


class BatchFlashcardsResult(BaseModel):
    created_count: int
    flashcards: list[FlashcardRead]


class BatchFlashcardsResponse(BaseModel):
    data: BatchFlashcardsResult
