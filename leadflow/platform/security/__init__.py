from leadflow.platform.security.context import ADMIN_ROLE, Actor, coerce_user_uuid
from leadflow.platform.security.errors import (
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from leadflow.platform.security.guards import require_actor, require_admin

__all__ = [
    "ADMIN_ROLE",
    "Actor",
    "coerce_user_uuid",
    "ConflictError",
    "DomainError",
    "ForbiddenError",
    "NotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "require_actor",
    "require_admin",
]
