from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from leadflow.platform.security.context import Actor
from leadflow.sharing.models import SharedEntity


class OwnedRepository:
    """Owner-scoped access to a model exposing ``id`` and ``owner_id``.

    Admins bypass scoping. When ``entity_type`` is set, rows shared with the actor are
    readable too; writes always require ownership.
    """

    model: Any = None
    entity_type: str | None = None

    def apply_owner_scope(self, query: Select[Any], actor: Actor, *, include_shared: bool = False) -> Select[Any]:
        if actor.is_admin:
            return query

        owned = self.model.owner_id == actor.user_id
        if include_shared and self.entity_type is not None:
            shared_ids = select(SharedEntity.entity_id).where(
                and_(
                    SharedEntity.entity_type == self.entity_type,
                    SharedEntity.shared_with_user_id == actor.user_id,
                )
            )
            return query.where(or_(owned, self.model.id.in_(shared_ids)))
        return query.where(owned)

    def get_readable(self, session: Session, actor: Actor, entity_id: uuid.UUID, *, options: Sequence[Any] = ()) -> Any:
        stmt = select(self.model).where(self.model.id == entity_id).options(*options)
        return session.scalar(self.apply_owner_scope(stmt, actor, include_shared=True))

    def get_writable(self, session: Session, actor: Actor, entity_id: uuid.UUID, *, options: Sequence[Any] = ()) -> Any:
        stmt = select(self.model).where(self.model.id == entity_id).options(*options)
        return session.scalar(self.apply_owner_scope(stmt, actor))
