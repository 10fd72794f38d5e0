from __future__ import annotations

import math
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from app.apis.deps import CurrentUser, get_flashcard_service, get_generation_service
from app.apis.errors import ApiError
from app.core.db.schemas.flashcards import FlashcardSource
from app.core.db_services import (
    FlashcardNotFoundError,
    FlashcardService,
    FlashcardServiceError,
    GenerationService,
    GenerationServiceError,
)
from app.core.logging import get_logger
from .schemas import (
    BatchFlashcardsCreate,
    BatchFlashcardsResponse,
    BatchFlashcardsResult,
    FlashcardListQuery,
    FlashcardListResponse,
    FlashcardResponse,
    FlashcardWrite,
    Pagination,
    SortField,
    SortOrder,
)


router = APIRouter(prefix="/api/flashcards", tags=["flashcards"])

logger = get_logger(__name__)

FlashcardId = Annotated[int, Path(gt=0, description="Flashcard id")]


def list_query(
    page: int = Query(1, ge=1),
    limit: int = Query(30, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=500),
    source: Optional[FlashcardSource] = Query(None),
    sort: SortField = Query(SortField.CREATED_AT),
    order: SortOrder = Query(SortOrder.DESC),
) -> FlashcardListQuery:
    return FlashcardListQuery(
        page=page,
        limit=limit,
        search=search or None,
        source=source,
        sort=sort,
        order=order,
    )


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit)
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def _not_found() -> ApiError:
    return ApiError(
        status.HTTP_404_NOT_FOUND,
        "Flashcard not found or you don't have permission to access it",
    )


@router.post(
    "",
    response_model=FlashcardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_flashcard(
    body: FlashcardWrite,
    user: CurrentUser,
    service: FlashcardService = Depends(get_flashcard_service),
) -> FlashcardResponse:
    flashcard = await service.create_manual_flashcard(user.id, body)
    return FlashcardResponse(data=flashcard)


@router.get("", response_model=FlashcardListResponse)
async def list_flashcards(
    user: CurrentUser,
    query: FlashcardListQuery = Depends(list_query),
    service: FlashcardService = Depends(get_flashcard_service),
) -> FlashcardListResponse:
    try:
        items, total = await service.list_flashcards(user.id, query)
    except FlashcardServiceError as e:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e)) from e

    return FlashcardListResponse(
        data=items, pagination=build_pagination(query.page, query.limit, total)
    )


@router.post(
    "/batch",
    response_model=BatchFlashcardsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_flashcards_batch(
    body: BatchFlashcardsCreate,
    user: CurrentUser,
    flashcards: FlashcardService = Depends(get_flashcard_service),
    generations: GenerationService = Depends(get_generation_service),
) -> BatchFlashcardsResponse:
    """Save accepted AI proposals, then record acceptance metrics.

    The metrics update is bookkeeping: if it fails the created flashcards are
    kept and the request still succeeds.
    """
    user_id = user.id
    generation = await generations.get_generation(user_id, body.generation_id)
    if generation is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Generation session not found")

    try:
        created = await flashcards.create_batch_flashcards(
            user_id, body.generation_id, body.flashcards
        )
    except FlashcardServiceError as e:
        logger.error(
            f"Creating {len(body.flashcards)} flashcards for generation "
            f"{body.generation_id} (user {user_id}) failed: {e}"
        )
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create flashcards"
        ) from e

    unedited = sum(1 for card in body.flashcards if not card.edited)
    edited = len(body.flashcards) - unedited
    try:
        await generations.update_generation_metrics(
            user_id,
            body.generation_id,
            accepted_unedited_count=unedited,
            accepted_edited_count=edited,
        )
    except GenerationServiceError as e:
        logger.error(
            f"Updating metrics of generation {body.generation_id} "
            f"(unedited={unedited}, edited={edited}) failed: {e}"
        )

    return BatchFlashcardsResponse(
        data=BatchFlashcardsResult(created_count=len(created), flashcards=created)
    )


@router.get("/{flashcard_id}", response_model=FlashcardResponse)
async def get_flashcard(
    user: CurrentUser,
    flashcard_id: FlashcardId,
    service: FlashcardService = Depends(get_flashcard_service),
) -> FlashcardResponse:
    try:
        flashcard = await service.get_flashcard(user.id, flashcard_id)
    except FlashcardNotFoundError as e:
        raise _not_found() from e
    return FlashcardResponse(data=flashcard)


@router.put("/{flashcard_id}", response_model=FlashcardResponse)
async def update_flashcard(
    body: FlashcardWrite,
    user: CurrentUser,
    flashcard_id: FlashcardId,
    service: FlashcardService = Depends(get_flashcard_service),
) -> FlashcardResponse:
    try:
        flashcard = await service.update_flashcard(user.id, flashcard_id, body)
    except FlashcardNotFoundError as e:
        raise _not_found() from e
    return FlashcardResponse(data=flashcard)


@router.delete("/{flashcard_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flashcard(
    user: CurrentUser,
    flashcard_id: FlashcardId,
    service: FlashcardService = Depends(get_flashcard_service),
) -> Response:
    try:
        await service.delete_flashcard(user.id, flashcard_id)
    except FlashcardNotFoundError as e:
        raise _not_found() from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
