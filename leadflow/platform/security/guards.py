from __future__ import annotations

from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import ForbiddenError, UnauthorizedError


def require_actor(actor: Actor | None) -> Actor:
    if actor is None:
        raise UnauthorizedError()
    return actor


def require_admin(actor: Actor | None, message: str | None = None) -> Actor:
    resolved = require_actor(actor)
    if not resolved.is_admin:
        raise ForbiddenError(message)
    return resolved
