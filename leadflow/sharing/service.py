from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from leadflow import audit
from leadflow.core.database import transaction
from leadflow.crm.models import User
from leadflow.crm.repositories import require_actor_user
from leadflow.crm.schemas import UserRead, UserRef
from leadflow.events import publish_domain_event, request_revalidation
from leadflow.metrics import observe_sharing_operation
from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import ConflictError, NotFoundError
from leadflow.platform.security.guards import require_actor, require_admin
from leadflow.sharing.models import SharedEntity
from leadflow.sharing.registry import OwnedEntityKind, resolve_entity_kind
from leadflow.sharing.schemas import OperationResult, SharedUserRead


logger = logging.getLogger("leadflow.sharing")

ALREADY_SHARED_MESSAGE = "Entidade já compartilhada com este usuário"


@dataclass(slots=True)
class EntityManagementService:
    """Ownership transfer and read-sharing across the shareable entity kinds.

    Mutations are admin-only and check every precondition before their first write.
    """

    def transfer_entity(
        self,
        session: Session,
        actor: Actor | None,
        entity_type: str,
        entity_id: uuid.UUID,
        new_owner_id: uuid.UUID,
    ) -> OperationResult:
        actor = require_admin(actor, "Apenas administradores podem transferir entidades")
        kind = resolve_entity_kind(entity_type)
        previous_owner_id = self._require_owner(session, kind, entity_id)
        target = session.get(User, new_owner_id)
        if target is None:
            raise NotFoundError("Usuário de destino não encontrado")

        # a transfer to the current owner still revokes every share
        with transaction(session):
            kind.set_owner(session, entity_id, target.id)
            removed = session.execute(
                delete(SharedEntity).where(
                    SharedEntity.entity_type == kind.entity_type,
                    SharedEntity.entity_id == entity_id,
                )
            ).rowcount
            audit.record(
                session,
                actor,
                kind.entity_type,
                entity_id,
                "entity.transferred",
                {"owner_id": str(previous_owner_id)},
                {"owner_id": str(target.id), "removed_shares": removed},
            )

        observe_sharing_operation(kind.entity_type, "transfer")
        logger.info(
            "entity.transferred",
            extra={
                "entity_type": kind.entity_type,
                "entity_id": str(entity_id),
                "target_user_id": str(target.id),
                "removed_shares": removed,
                "actor_user_id": str(actor.user_id),
            },
        )
        publish_domain_event(
            "crm.entity.transferred",
            actor,
            {
                "entity_type": kind.entity_type,
                "entity_id": str(entity_id),
                "previous_owner_id": str(previous_owner_id),
                "new_owner_id": str(target.id),
            },
        )
        request_revalidation(*kind.paths(entity_id))
        return OperationResult(success=True, message=f"{kind.label} transferido para {target.name}")

    def share_entity(
        self,
        session: Session,
        actor: Actor | None,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> OperationResult:
        actor = require_admin(actor, "Apenas administradores podem compartilhar entidades")
        kind = resolve_entity_kind(entity_type)
        owner_id = self._require_owner(session, kind, entity_id)
        target = session.get(User, user_id)
        if target is None:
            raise NotFoundError("Usuário não encontrado")
        if target.id == owner_id:
            raise ConflictError("Não é possível compartilhar com o próprio dono")
        if self._find_share(session, kind, entity_id, target.id) is not None:
            raise ConflictError(ALREADY_SHARED_MESSAGE)
        require_actor_user(session, actor)

        share = SharedEntity(
            entity_type=kind.entity_type,
            entity_id=entity_id,
            shared_with_user_id=target.id,
            shared_by_user_id=actor.user_id,
        )
        try:
            with transaction(session):
                session.add(share)
                session.flush()
                audit.record(
                    session,
                    actor,
                    kind.entity_type,
                    entity_id,
                    "entity.shared",
                    None,
                    {"shared_with_user_id": str(target.id)},
                )
        except IntegrityError:
            # a concurrent share of the same triple is a conflict; any other violation propagates
            if self._find_share(session, kind, entity_id, user_id) is not None:
                raise ConflictError(ALREADY_SHARED_MESSAGE) from None
            raise

        observe_sharing_operation(kind.entity_type, "share")
        logger.info(
            "entity.shared",
            extra={
                "entity_type": kind.entity_type,
                "entity_id": str(entity_id),
                "target_user_id": str(target.id),
                "actor_user_id": str(actor.user_id),
            },
        )
        request_revalidation(*kind.paths(entity_id))
        return OperationResult(success=True, message=f"{kind.label} compartilhado com {target.name}")

    def unshare_entity(
        self,
        session: Session,
        actor: Actor | None,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> OperationResult:
        actor = require_admin(actor, "Apenas administradores podem remover compartilhamentos")
        kind = resolve_entity_kind(entity_type)
        share = self._find_share(session, kind, entity_id, user_id)
        if share is None:
            raise NotFoundError("Compartilhamento não encontrado")

        with transaction(session):
            session.delete(share)
            audit.record(
                session,
                actor,
                kind.entity_type,
                entity_id,
                "entity.unshared",
                {"shared_with_user_id": str(user_id)},
                None,
            )

        observe_sharing_operation(kind.entity_type, "unshare")
        logger.info(
            "entity.unshared",
            extra={
                "entity_type": kind.entity_type,
                "entity_id": str(entity_id),
                "target_user_id": str(user_id),
                "actor_user_id": str(actor.user_id),
            },
        )
        request_revalidation(*kind.paths(entity_id))
        return OperationResult(success=True, message="Compartilhamento removido")

    def get_shared_users(
        self, session: Session, actor: Actor | None, entity_type: str, entity_id: uuid.UUID
    ) -> list[SharedUserRead]:
        require_actor(actor)
        kind = resolve_entity_kind(entity_type)
        shares = session.scalars(
            select(SharedEntity)
            .where(SharedEntity.entity_type == kind.entity_type, SharedEntity.entity_id == entity_id)
            .options(joinedload(SharedEntity.shared_with_user), joinedload(SharedEntity.shared_by_user))
            .order_by(SharedEntity.created_at.desc())
        ).all()
        return [
            SharedUserRead(
                id=share.id,
                shared_with=UserRef.model_validate(share.shared_with_user),
                shared_by=UserRef(id=share.shared_by_user.id, name=share.shared_by_user.name),
                created_at=share.created_at,
            )
            for share in shares
        ]

    def get_available_users_for_sharing(
        self, session: Session, actor: Actor | None, entity_type: str, entity_id: uuid.UUID
    ) -> list[UserRef]:
        require_actor(actor)
        kind = resolve_entity_kind(entity_type)
        owner_id = self._require_owner(session, kind, entity_id)
        already_shared = select(SharedEntity.shared_with_user_id).where(
            SharedEntity.entity_type == kind.entity_type,
            SharedEntity.entity_id == entity_id,
        )
        users = session.scalars(
            select(User).where(User.id != owner_id, User.id.not_in(already_shared)).order_by(User.name.asc())
        ).all()
        return [UserRef.model_validate(user) for user in users]

    def get_users_for_transfer(
        self, session: Session, actor: Actor | None, current_owner_id: uuid.UUID
    ) -> list[UserRead]:
        require_admin(actor, "Apenas administradores podem transferir entidades")
        users = session.scalars(select(User).where(User.id != current_owner_id).order_by(User.name.asc())).all()
        return [UserRead.model_validate(user) for user in users]

    def get_entity_owner(
        self, session: Session, actor: Actor | None, entity_type: str, entity_id: uuid.UUID
    ) -> UserRef | None:
        require_actor(actor)
        kind = resolve_entity_kind(entity_type)
        owner_id = kind.find_owner(session, entity_id)
        if owner_id is None:
            return None
        owner = session.get(User, owner_id)
        return UserRef.model_validate(owner) if owner is not None else None

    def get_shared_users_for_entities(
        self, session: Session, actor: Actor | None, entity_type: str, entity_ids: Sequence[uuid.UUID]
    ) -> dict[str, list[UserRef]]:
        require_actor(actor)
        kind = resolve_entity_kind(entity_type)
        if not entity_ids:
            return {}

        shares = session.scalars(
            select(SharedEntity)
            .where(SharedEntity.entity_type == kind.entity_type, SharedEntity.entity_id.in_(list(entity_ids)))
            .options(joinedload(SharedEntity.shared_with_user))
        ).all()
        grouped: dict[str, list[UserRef]] = {}
        for share in shares:
            grouped.setdefault(str(share.entity_id), []).append(
                UserRef(id=share.shared_with_user.id, name=share.shared_with_user.name)
            )
        return grouped

    @staticmethod
    def _require_owner(session: Session, kind: OwnedEntityKind, entity_id: uuid.UUID) -> uuid.UUID:
        owner_id = kind.find_owner(session, entity_id)
        if owner_id is None:
            raise NotFoundError("Entidade não encontrada")
        return owner_id

    @staticmethod
    def _find_share(
        session: Session, kind: OwnedEntityKind, entity_id: uuid.UUID, user_id: uuid.UUID
    ) -> SharedEntity | None:
        return session.scalar(
            select(SharedEntity).where(
                SharedEntity.entity_type == kind.entity_type,
                SharedEntity.entity_id == entity_id,
                SharedEntity.shared_with_user_id == user_id,
            )
        )


entity_management_service = EntityManagementService()
