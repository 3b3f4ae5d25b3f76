from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from leadflow.context import get_correlation_id
from leadflow.core.events import event_bus
from leadflow.platform.security.context import Actor

published_events: list[dict[str, Any]] = []

REVALIDATE_EVENT = "ui.revalidate"


def publish(envelope: dict[str, Any]) -> None:
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()

    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        event_bus.publish(event_type, envelope)


def publish_domain_event(event_type: str, actor: Actor, payload: dict[str, Any]) -> None:
    publish(
        {
            "event_id": str(uuid.uuid4()),
            "event_type": event_type,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            "actor_user_id": str(actor.user_id),
            "correlation_id": actor.correlation_id,
            "version": 1,
            "payload": payload,
        }
    )


def request_revalidation(*paths: str) -> None:
    """Ask UI consumers to refetch the given paths. Fire-and-forget."""
    unique_paths = list(dict.fromkeys(path for path in paths if path))
    if not unique_paths:
        return
    publish({"event_id": str(uuid.uuid4()), "event_type": REVALIDATE_EVENT, "payload": {"paths": unique_paths}})
