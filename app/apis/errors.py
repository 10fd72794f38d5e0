"""Uniform error responses: ``{"error": ..., "message": ..., "details"?: ...}``."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.logging import get_logger


logger = get_logger(__name__)

ERROR_LABELS = {
    status.HTTP_400_BAD_REQUEST: "Bad request",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "Not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
    status.HTTP_422_UNPROCESSABLE_CONTENT: "Validation error",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal server error",
    status.HTTP_503_SERVICE_UNAVAILABLE: "Service unavailable",
}

UNAUTHORIZED_MESSAGE = "Invalid or missing authentication token"

# Pydantic error types meaning the body itself could not be read as an object
_MALFORMED_BODY_TYPES = {"json_invalid", "missing", "model_attributes_type", "dict_type"}


class ApiError(HTTPException):
    """HTTPException carrying the error label and optional field details."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        error: Optional[str] = None,
        details: Optional[dict[str, list[str]]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.error = error or ERROR_LABELS.get(status_code, "Error")
        self.message = message
        self.details = details


def error_body(
    status_code: int,
    message: str,
    *,
    error: Optional[str] = None,
    details: Optional[dict[str, list[str]]] = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "error": error or ERROR_LABELS.get(status_code, "Error"),
        "message": message,
    }
    if details:
        body["details"] = details
    return body


def _message_from_detail(status_code: int, detail: Any) -> str:
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return UNAUTHORIZED_MESSAGE
    if isinstance(detail, dict):
        # fastapi-users: {"code": ..., "reason": ...}
        detail = detail.get("reason") or detail.get("code") or "Request failed"
    if isinstance(detail, Enum):
        # fastapi-users ErrorCode
        return str(detail.value)
    if detail:
        return str(detail)
    return ERROR_LABELS.get(status_code, "Request failed")


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if isinstance(exc, ApiError):
        body = error_body(
            exc.status_code, exc.message, error=exc.error, details=exc.details
        )
    else:
        body = error_body(
            exc.status_code, _message_from_detail(exc.status_code, exc.detail)
        )
    return JSONResponse(
        status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None)
    )


def _field_name(loc: tuple[Any, ...]) -> str:
    if loc and loc[0] in ("body", "query", "path"):
        loc = loc[1:]
    return ".".join(str(p) for p in loc) or "body"


def _clean_message(msg: str) -> str:
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()

    for err in errors:
        loc = tuple(err.get("loc", ()))
        malformed = loc == ("body",) and err.get("type") in _MALFORMED_BODY_TYPES
        if malformed or err.get("type") == "json_invalid":
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content=error_body(status.HTTP_400_BAD_REQUEST, "Invalid request body"),
            )
        if loc[:1] == ("path",):
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content=error_body(
                    status.HTTP_400_BAD_REQUEST, f"Invalid {_field_name(loc)}"
                ),
            )

    details: dict[str, list[str]] = {}
    for err in errors:
        field = _field_name(tuple(err.get("loc", ())))
        details.setdefault(field, []).append(_clean_message(err.get("msg", "")))

    only_query = all(tuple(e.get("loc", ()))[:1] == ("query",) for e in errors)
    message = "Invalid query parameters" if only_query else "Validation failed"
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_body(
            status.HTTP_422_UNPROCESSABLE_CONTENT, message, details=details
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred"
        ),
    )
