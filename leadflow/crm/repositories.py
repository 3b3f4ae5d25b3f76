from __future__ import annotations

from sqlalchemy.orm import Session

from leadflow.crm.models import Activity, Contact, Deal, Lead, Organization, Partner, User
from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import UnauthorizedError
from leadflow.platform.security.repository import OwnedRepository


class LeadRepository(OwnedRepository):
    model = Lead
    entity_type = "lead"


class ContactRepository(OwnedRepository):
    model = Contact
    entity_type = "contact"


class OrganizationRepository(OwnedRepository):
    model = Organization
    entity_type = "organization"


class PartnerRepository(OwnedRepository):
    model = Partner
    entity_type = "partner"


class DealRepository(OwnedRepository):
    model = Deal
    entity_type = "deal"


class ActivityRepository(OwnedRepository):
    model = Activity


def require_actor_user(session: Session, actor: Actor) -> User:
    """Resolve the actor's user row; rows written with the actor as owner or sharer reference it."""
    user = session.get(User, actor.user_id)
    if user is None:
        raise UnauthorizedError("Usuário autenticado não encontrado")
    return user
