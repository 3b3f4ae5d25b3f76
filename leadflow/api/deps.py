from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Depends
from fastapi.responses import JSONResponse
from starlette.requests import Request

from leadflow.context import get_correlation_id
from leadflow.core.auth import AuthUser, get_current_user as get_auth_user
from leadflow.core.config import get_settings
from leadflow.platform.security.context import ADMIN_ROLE, Actor, coerce_user_uuid
from leadflow.platform.security.errors import DomainError


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def domain_error_response(request: Request, exc: DomainError) -> JSONResponse:
    return error_response(request, status_code=exc.status_code, code=exc.code, message=exc.message)


def get_current_actor(request: Request, auth_user: AuthUser | None = Depends(get_auth_user)) -> Actor | None:
    """Resolve the caller; ``None`` when unauthenticated so services raise Unauthorized themselves."""
    if auth_user is None:
        return None
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    role = ADMIN_ROLE if auth_user.role == get_settings().admin_role.lower() else auth_user.role
    return Actor(user_id=coerce_user_uuid(auth_user.sub), role=role, correlation_id=correlation_id)
