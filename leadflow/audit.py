from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from leadflow.context import get_correlation_id
from leadflow.models.audit import AuditLog
from leadflow.platform.security.context import Actor


def record(
    session: Session,
    actor: Actor,
    entity_type: str,
    entity_id: Any,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction; it commits or rolls back with the mutation."""
    entry = AuditLog(
        actor_id=str(actor.user_id),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        event_metadata={"before": before, "after": after},
        correlation_id=actor.correlation_id or get_correlation_id(),
    )
    session.add(entry)
    return entry
