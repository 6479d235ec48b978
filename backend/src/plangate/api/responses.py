"""Structured JSON error responses shared by exception handlers and routes."""
import uuid
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from plangate.config import settings
from plangate.errors import AlreadyOnWaitlistError, GatingError, MonthlyLimitExceededError
from plangate.schemas.error import REMEDIATION_HINTS, ErrorDetail, ErrorResponse


def request_id_of(request: Request) -> str:
    """Request id bound by the logging middleware, or a fresh one."""
    return getattr(request.state, "request_id", None) or f"req_{uuid.uuid4().hex[:12]}"


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: list[ErrorDetail] | None = None,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    """
    Build an ``ErrorResponse`` body.

    Keyword arguments beyond the standard fields are added at the top level
    of the body (for example ``position`` or ``stats``).
    """
    body = ErrorResponse(
        error=code,
        message=message,
        details=details,
        remediation=REMEDIATION_HINTS.get(code),
        request_id=request_id_of(request),
    ).model_dump(mode="json")
    body.update(extra)

    return JSONResponse(status_code=status_code, content=body, headers=headers)


def gating_error_response(request: Request, exc: GatingError, **extra: Any) -> JSONResponse:
    """Map a gating error to its HTTP status and body."""
    headers = None
    if isinstance(exc, MonthlyLimitExceededError) or exc.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        headers = {"Retry-After": str(settings.quota_retry_after_seconds)}
    if isinstance(exc, AlreadyOnWaitlistError):
        extra.setdefault("position", exc.position)

    return error_response(
        request,
        exc.status_code,
        exc.code,
        exc.message,
        headers=headers,
        **extra,
    )
