from __future__ import annotations

import uuid
from dataclasses import dataclass

ADMIN_ROLE = "admin"


@dataclass(slots=True, frozen=True)
class Actor:
    """The authenticated caller, passed explicitly into every service operation."""

    user_id: uuid.UUID
    role: str
    correlation_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == ADMIN_ROLE


def coerce_user_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        return uuid.uuid5(uuid.NAMESPACE_URL, f"leadflow-actor:{value}")
