from __future__ import annotations

import time
from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from app.apis.deps import CurrentUser, get_generation_service
from app.apis.errors import ApiError
from app.core.config import settings
from app.core.db_services import (
    GenerationMetricsError,
    GenerationNotFoundError,
    GenerationService,
    GenerationServiceError,
)
from app.core.logging import get_logger
from app.modules.generations.hashing import hash_text
from app.modules.generations.openrouter import (
    OpenRouterError,
    OpenRouterService,
    OpenRouterTimeoutError,
    get_openrouter_service,
)
from .schemas import (
    GenerateFlashcardsResponse,
    GenerateFlashcardsResult,
    GenerationCreate,
    GenerationMetricsUpdate,
    GenerationProposal,
    GenerationResponse,
)


router = APIRouter(prefix="/api/generations", tags=["generations"])

logger = get_logger(__name__)

GenerationId = Annotated[int, Path(gt=0, description="Generation id")]


@router.post(
    "",
    response_model=GenerateFlashcardsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_generation(
    body: GenerationCreate,
    user: CurrentUser,
    generations: GenerationService = Depends(get_generation_service),
    ai: OpenRouterService = Depends(get_openrouter_service),
) -> GenerateFlashcardsResponse:
    """Generate flashcard proposals from source text.

    Proposals are not saved; the client accepts a subset later through
    ``POST /api/flashcards/batch``. Only a successful AI call creates a
    generation record, failed attempts go to the error log.
    """
    user_id = user.id
    source_text = body.source_text
    source_text_hash = hash_text(source_text)
    source_text_length = len(source_text)
    log_context = dict(
        user_id=user_id,
        model=ai.model,
        source_text_hash=source_text_hash,
        source_text_length=source_text_length,
    )

    started = time.perf_counter()
    try:
        proposals = await ai.generate_flashcards(
            source_text, count=settings.openrouter.flashcard_count
        )
    except OpenRouterError as e:
        code = (
            "OPENROUTER_TIMEOUT"
            if isinstance(e, OpenRouterTimeoutError)
            else "OPENROUTER_ERROR"
        )
        logger.warning(f"AI generation failed for user {user_id} ({code}): {e}")
        await generations.log_error(
            **log_context, error_code=code, error_message=str(e)
        )
        raise ApiError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "AI generation service is currently unavailable. Please try again later.",
        ) from e
    generation_duration = int((time.perf_counter() - started) * 1000)

    try:
        generation = await generations.create_generation(
            **log_context,
            generated_count=len(proposals),
            generation_duration=generation_duration,
        )
    except GenerationServiceError as e:
        logger.error(f"Saving generation for user {user_id} failed: {e}")
        await generations.log_error(
            **log_context, error_code="DATABASE_ERROR", error_message=str(e)
        )
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred"
        ) from e

    return GenerateFlashcardsResponse(
        data=GenerateFlashcardsResult(
            generation_id=generation.id,
            model=generation.model,
            generated_count=generation.generated_count,
            generation_duration=generation.generation_duration,
            proposals=[GenerationProposal(front=p.front, back=p.back) for p in proposals],
        )
    )


@router.get("/{generation_id}", response_model=GenerationResponse)
async def get_generation(
    user: CurrentUser,
    generation_id: GenerationId,
    generations: GenerationService = Depends(get_generation_service),
) -> GenerationResponse:
    try:
        generation = await generations.get_generation_read(user.id, generation_id)
    except GenerationNotFoundError as e:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Generation not found") from e
    return GenerationResponse(data=generation)


@router.patch("/{generation_id}", response_model=GenerationResponse)
async def update_generation_metrics(
    body: GenerationMetricsUpdate,
    user: CurrentUser,
    generation_id: GenerationId,
    generations: GenerationService = Depends(get_generation_service),
) -> GenerationResponse:
    try:
        generation = await generations.update_generation_metrics(
            user.id,
            generation_id,
            accepted_unedited_count=body.accepted_unedited_count,
            accepted_edited_count=body.accepted_edited_count,
        )
    except GenerationNotFoundError as e:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Generation not found") from e
    except GenerationMetricsError as e:
        raise ApiError(
            status.HTTP_422_UNPROCESSABLE_CONTENT,
            str(e),
            details={"accepted_counts": [str(e)]},
        ) from e
    return GenerationResponse(data=generation)
