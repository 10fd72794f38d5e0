from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.base import get_session
from app.core.db.schemas.auth import User
from app.core.db_services import FlashcardService, GenerationService
from app.modules.auth import current_active_user


CurrentUser = Annotated[User, Depends(current_active_user)]


async def get_flashcard_service(
    session: AsyncSession = Depends(get_session),
) -> FlashcardService:
    return FlashcardService(session)


async def get_generation_service(
    session: AsyncSession = Depends(get_session),
) -> GenerationService:
    return GenerationService(session)
