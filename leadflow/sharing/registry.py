from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from leadflow.crm.repositories import (
    ContactRepository,
    DealRepository,
    LeadRepository,
    OrganizationRepository,
    PartnerRepository,
)
from leadflow.platform.security.errors import NotFoundError, ValidationError
from leadflow.platform.security.repository import OwnedRepository


@dataclass(frozen=True, slots=True)
class OwnedEntityKind:
    """Uniform owner access to one shareable entity kind."""

    entity_type: str
    label: str
    base_path: str
    repository: OwnedRepository

    def find_owner(self, session: Session, entity_id: uuid.UUID) -> uuid.UUID | None:
        model = self.repository.model
        return session.scalar(select(model.owner_id).where(model.id == entity_id))

    def set_owner(self, session: Session, entity_id: uuid.UUID, owner_id: uuid.UUID) -> None:
        entity = session.get(self.repository.model, entity_id)
        if entity is None:
            raise NotFoundError("Entidade não encontrada")
        entity.owner_id = owner_id

    def paths(self, entity_id: uuid.UUID) -> tuple[str, str]:
        return self.base_path, f"{self.base_path}/{entity_id}"


ENTITY_KINDS: dict[str, OwnedEntityKind] = {
    kind.entity_type: kind
    for kind in (
        OwnedEntityKind("lead", "Lead", "/leads", LeadRepository()),
        OwnedEntityKind("contact", "Contato", "/contacts", ContactRepository()),
        OwnedEntityKind("organization", "Organização", "/organizations", OrganizationRepository()),
        OwnedEntityKind("partner", "Parceiro", "/partners", PartnerRepository()),
        OwnedEntityKind("deal", "Negócio", "/deals", DealRepository()),
    )
}


def resolve_entity_kind(entity_type: str) -> OwnedEntityKind:
    kind = ENTITY_KINDS.get(entity_type)
    if kind is None:
        raise ValidationError("Tipo de entidade inválido")
    return kind
