from typing import Optional

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.apis.errors import ApiError
from app.core.config import settings
from app.modules.auth import (
    fastapi_users,
    auth_backend,
    get_jwt_strategy,
    UserRead,
    UserCreate,
    UserUpdate,
)


router = APIRouter()


class SetSessionRequest(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class SessionResult(BaseModel):
    success: bool


def _set_cookie(response: Response, name: str, value: str) -> None:
    response.set_cookie(
        name,
        value,
        max_age=settings.cookies.max_age_seconds,
        path="/",
        httponly=True,
        secure=settings.app.is_production,
        samesite="lax",
    )


def _clear_session_cookies(response: Response) -> None:
    response.delete_cookie(settings.cookies.access_cookie_name, path="/")
    response.delete_cookie(settings.cookies.refresh_cookie_name, path="/")


@router.post("/api/auth/set-session", response_model=SessionResult, tags=["auth"])
async def set_session(body: SetSessionRequest, response: Response) -> SessionResult:
    """Mirror a client-side token into httpOnly cookies for server-rendered pages"""
    if not body.access_token:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing access_token")

    _set_cookie(response, settings.cookies.access_cookie_name, body.access_token)
    if body.refresh_token:
        _set_cookie(response, settings.cookies.refresh_cookie_name, body.refresh_token)
    return SessionResult(success=True)


@router.post("/api/auth/logout", response_model=SessionResult, tags=["auth"])
async def logout(response: Response) -> SessionResult:
    """Drop the session cookies; JWTs are stateless so there is nothing to revoke"""
    _clear_session_cookies(response)
    return SessionResult(success=True)


@router.get("/api/auth/.well-known/jwks.json", tags=["auth"])
async def jwks():
    """JWKS endpoint for public key distribution"""
    return JSONResponse(content=get_jwt_strategy().get_jwks())


router.include_router(
    fastapi_users.get_auth_router(auth_backend),
    prefix="/api/auth/jwt",
    tags=["auth"],
)

router.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
    prefix="/api/auth",
    tags=["auth"],
)

router.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix="/api/users",
    tags=["users"],
)
