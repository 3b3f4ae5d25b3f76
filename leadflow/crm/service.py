from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Select, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from leadflow import audit
from leadflow.cadences.models import LeadCadence, LeadCadenceActivity
from leadflow.crm.models import ICP, Activity, Contact, Lead, LeadContact, LeadICP, Organization, User, utcnow
from leadflow.core.database import transaction
from leadflow.crm.repositories import ActivityRepository, LeadRepository, require_actor_user
from leadflow.crm.schemas import (
    ActivityRead,
    ContactRead,
    LeadConversionRead,
    LeadCreate,
    LeadRead,
    OrganizationRead,
    UserCreate,
    UserRead,
)
from leadflow.events import publish_domain_event, request_revalidation
from leadflow.metrics import observe_lead_conversion
from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import ConflictError, NotFoundError
from leadflow.platform.security.guards import require_actor, require_admin
from leadflow.sharing.models import SharedEntity


logger = logging.getLogger("leadflow.crm")


@dataclass(slots=True)
class UserService:
    def list_users(self, session: Session, actor: Actor | None) -> list[UserRead]:
        require_actor(actor)
        users = session.scalars(select(User).order_by(User.name.asc())).all()
        return [UserRead.model_validate(user) for user in users]

    def create_user(self, session: Session, actor: Actor | None, dto: UserCreate) -> UserRead:
        actor = require_admin(actor, "Apenas administradores podem criar usuários")
        email = dto.email.strip().lower()
        if session.scalar(select(User.id).where(User.email == email)) is not None:
            raise ConflictError("E-mail já cadastrado")

        user = User(name=dto.name, email=email, role=dto.role)
        try:
            with transaction(session):
                session.add(user)
                session.flush()
                audit.record(session, actor, "user", user.id, "user.created", None, {"email": email, "role": dto.role})
        except IntegrityError:
            if session.scalar(select(User.id).where(User.email == email)) is not None:
                raise ConflictError("E-mail já cadastrado") from None
            raise
        session.refresh(user)
        return UserRead.model_validate(user)


@dataclass(slots=True)
class LeadService:
    lead_repository: LeadRepository = LeadRepository()
    clock: Callable[[], datetime] = utcnow

    def create_lead(self, session: Session, actor: Actor | None, dto: LeadCreate) -> LeadRead:
        actor = require_actor(actor)
        require_actor_user(session, actor)
        payload = dto.model_dump(mode="python", exclude={"contacts"})
        lead = Lead(**payload, owner_id=actor.user_id)

        has_primary = any(contact.is_primary for contact in dto.contacts)
        for index, contact in enumerate(dto.contacts):
            values = contact.model_dump(mode="python")
            if not has_primary and index == 0:
                values["is_primary"] = True
            lead.lead_contacts.append(LeadContact(**values))

        with transaction(session):
            session.add(lead)
            session.flush()
            audit.record(
                session,
                actor,
                "lead",
                lead.id,
                "lead.created",
                None,
                {"business_name": lead.business_name, "contacts": len(dto.contacts)},
            )
        session.refresh(lead)

        logger.info("lead.created", extra={"lead_id": str(lead.id), "actor_user_id": str(actor.user_id)})
        request_revalidation("/leads")
        return LeadRead.model_validate(lead)

    def list_leads(self, session: Session, actor: Actor | None, *, status: str | None = None) -> list[LeadRead]:
        actor = require_actor(actor)
        stmt: Select[tuple[Lead]] = select(Lead).options(selectinload(Lead.lead_contacts))
        if status is not None:
            stmt = stmt.where(Lead.status == status)
        stmt = self.lead_repository.apply_owner_scope(stmt, actor, include_shared=True)
        return [LeadRead.model_validate(lead) for lead in session.scalars(stmt.order_by(Lead.created_at.desc())).all()]

    def get_lead(self, session: Session, actor: Actor | None, lead_id: uuid.UUID) -> LeadRead:
        actor = require_actor(actor)
        lead = self.lead_repository.get_readable(session, actor, lead_id, options=[selectinload(Lead.lead_contacts)])
        if lead is None:
            raise NotFoundError("Lead não encontrado")
        return LeadRead.model_validate(lead)

    def delete_lead(self, session: Session, actor: Actor | None, lead_id: uuid.UUID) -> None:
        actor = require_actor(actor)
        lead = self.lead_repository.get_writable(session, actor, lead_id)
        if lead is None:
            raise NotFoundError("Lead não encontrado")
        if lead.converted_at is not None:
            raise ConflictError("Não é possível excluir um lead já convertido")

        lead_cadence_ids = select(LeadCadence.id).where(LeadCadence.lead_id == lead.id)
        with transaction(session):
            session.execute(
                delete(LeadCadenceActivity).where(LeadCadenceActivity.lead_cadence_id.in_(lead_cadence_ids))
            )
            session.execute(delete(LeadCadence).where(LeadCadence.lead_id == lead.id))
            session.execute(delete(Activity).where(Activity.lead_id == lead.id))
            session.execute(
                delete(SharedEntity).where(SharedEntity.entity_type == "lead", SharedEntity.entity_id == lead.id)
            )
            audit.record(session, actor, "lead", lead.id, "lead.deleted", {"business_name": lead.business_name}, None)
            session.delete(lead)

        logger.info("lead.deleted", extra={"lead_id": str(lead_id), "actor_user_id": str(actor.user_id)})
        request_revalidation("/leads", "/activities")

    def link_icp(self, session: Session, actor: Actor | None, lead_id: uuid.UUID, icp_id: uuid.UUID) -> None:
        actor = require_actor(actor)
        lead = self.lead_repository.get_writable(session, actor, lead_id)
        if lead is None:
            raise NotFoundError("Lead não encontrado")
        if session.get(ICP, icp_id) is None:
            raise NotFoundError("ICP não encontrado")
        existing = session.scalar(select(LeadICP.id).where(LeadICP.lead_id == lead.id, LeadICP.icp_id == icp_id))
        if existing is not None:
            raise ConflictError("ICP já vinculado a este lead")

        try:
            with transaction(session):
                session.add(LeadICP(lead_id=lead.id, icp_id=icp_id))
                session.flush()
                audit.record(session, actor, "lead", lead.id, "lead.icp_linked", None, {"icp_id": str(icp_id)})
        except IntegrityError:
            linked = select(LeadICP.id).where(LeadICP.lead_id == lead_id, LeadICP.icp_id == icp_id)
            if session.scalar(linked) is not None:
                raise ConflictError("ICP já vinculado a este lead") from None
            raise

        request_revalidation(f"/leads/{lead.id}")

    def convert_lead_to_organization(
        self, session: Session, actor: Actor | None, lead_id: uuid.UUID
    ) -> LeadConversionRead:
        """Turn a lead and its lead contacts into an organization with contacts, in one transaction."""
        actor = require_actor(actor)
        lead = self.lead_repository.get_writable(
            session, actor, lead_id, options=[selectinload(Lead.lead_contacts)]
        )
        if lead is None:
            raise NotFoundError("Lead não encontrado")
        if lead.converted_at is not None:
            raise ConflictError("Lead já foi convertido")
        if not lead.lead_contacts:
            raise ConflictError("Lead precisa ter pelo menos um contato antes de ser convertido")
        require_actor_user(session, actor)

        with transaction(session):
            organization = Organization(
                name=lead.business_name,
                legal_name=lead.registered_name,
                website=lead.website,
                phone=lead.phone,
                whatsapp=lead.whatsapp,
                email=lead.email,
                country=lead.country,
                state=lead.state,
                city=lead.city,
                zip_code=lead.zip_code,
                street_address=lead.address,
                industry=lead.primary_activity,
                employee_count=lead.employees_count,
                annual_revenue=lead.revenue,
                tax_id=lead.company_registration_id,
                description=lead.description,
                source_lead_id=lead.id,
                owner_id=actor.user_id,
            )
            session.add(organization)
            session.flush()

            for lead_contact in lead.lead_contacts:
                contact = Contact(
                    name=lead_contact.name,
                    email=lead_contact.email,
                    phone=lead_contact.phone,
                    whatsapp=lead_contact.whatsapp,
                    role=lead_contact.role,
                    organization_id=organization.id,
                    is_primary=lead_contact.is_primary,
                    source_lead_contact_id=lead_contact.id,
                    owner_id=actor.user_id,
                )
                session.add(contact)
                session.flush()
                lead_contact.converted_to_contact_id = contact.id

            session.execute(
                update(Contact)
                .where(Contact.lead_id == lead.id)
                .values(lead_id=None, organization_id=organization.id)
                .execution_options(synchronize_session="fetch")
            )

            previous_status = lead.status
            lead.status = "qualified"
            lead.converted_at = self.clock()
            lead.converted_to_organization_id = organization.id
            audit.record(
                session,
                actor,
                "lead",
                lead.id,
                "lead.converted",
                {"status": previous_status},
                {"status": lead.status, "organization_id": str(organization.id), "contacts": len(lead.lead_contacts)},
            )

        contacts = session.scalars(
            select(Contact).where(Contact.organization_id == organization.id).order_by(Contact.created_at.asc())
        ).all()

        observe_lead_conversion()
        logger.info(
            "lead.converted",
            extra={
                "lead_id": str(lead_id),
                "organization_id": str(organization.id),
                "actor_user_id": str(actor.user_id),
            },
        )
        publish_domain_event(
            "crm.lead.converted",
            actor,
            {
                "lead_id": str(lead_id),
                "organization_id": str(organization.id),
                "contact_ids": [str(contact.id) for contact in contacts],
            },
        )
        request_revalidation("/leads", f"/leads/{lead_id}", "/organizations", "/contacts")
        return LeadConversionRead(
            organization=OrganizationRead.model_validate(organization),
            contacts=[ContactRead.model_validate(contact) for contact in contacts],
        )


@dataclass(slots=True)
class ActivityService:
    activity_repository: ActivityRepository = ActivityRepository()
    lead_repository: LeadRepository = LeadRepository()
    clock: Callable[[], datetime] = utcnow

    def list_activities_for_lead(self, session: Session, actor: Actor | None, lead_id: uuid.UUID) -> list[ActivityRead]:
        actor = require_actor(actor)
        lead = self.lead_repository.get_readable(session, actor, lead_id)
        if lead is None:
            raise NotFoundError("Lead não encontrado")
        activities = session.scalars(
            select(Activity).where(Activity.lead_id == lead.id).order_by(Activity.due_date.asc(), Activity.created_at.asc())
        ).all()
        return [ActivityRead.model_validate(activity) for activity in activities]

    def complete_activity(self, session: Session, actor: Actor | None, activity_id: uuid.UUID) -> ActivityRead:
        return self._set_completed(session, actor, activity_id, True)

    def reopen_activity(self, session: Session, actor: Actor | None, activity_id: uuid.UUID) -> ActivityRead:
        return self._set_completed(session, actor, activity_id, False)

    def _set_completed(self, session: Session, actor: Actor | None, activity_id: uuid.UUID, completed: bool) -> ActivityRead:
        actor = require_actor(actor)
        activity = self.activity_repository.get_writable(session, actor, activity_id)
        if activity is None:
            raise NotFoundError("Atividade não encontrada")

        before = activity.completed
        with transaction(session):
            activity.completed = completed
            activity.completed_at = self.clock() if completed else None
            audit.record(
                session,
                actor,
                "activity",
                activity.id,
                "activity.completed" if completed else "activity.reopened",
                {"completed": before},
                {"completed": completed},
            )
        session.refresh(activity)

        paths = ["/activities"]
        if activity.lead_id is not None:
            paths.append(f"/leads/{activity.lead_id}")
        request_revalidation(*paths)
        return ActivityRead.model_validate(activity)


user_service = UserService()
lead_service = LeadService()
activity_service = ActivityService()
