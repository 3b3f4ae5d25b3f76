from __future__ import annotations

import logging
import math
import re
import time
import unicodedata
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta, timezone

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from leadflow import audit
from leadflow.cadences.models import Cadence, CadenceStep, LeadCadence, LeadCadenceActivity
from leadflow.cadences.repository import CadenceRepository, LeadCadenceRepository
from leadflow.cadences.schemas import (
    ApplyCadenceRequest,
    ApplyCadenceResult,
    CadenceCreate,
    CadenceRead,
    CadenceStepCreate,
    CadenceStepRead,
    CadenceStepReorder,
    CadenceStepUpdate,
    CadenceSummaryRead,
    CadenceUpdate,
    LeadCadenceActivityRead,
    LeadCadenceProgressRead,
    LeadCadenceRead,
    ScheduledActivityRead,
    ScheduledStepRead,
)
from leadflow.crm.models import ICP, Activity, LeadICP, utcnow
from leadflow.core.database import transaction
from leadflow.crm.repositories import LeadRepository, require_actor_user
from leadflow.crm.schemas import ActivityRead
from leadflow.events import publish_domain_event, request_revalidation
from leadflow.metrics import observe_cadence_applied, observe_lead_cadence_transition, observe_shifted_activities
from leadflow.otel import get_tracer
from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import ConflictError, NotFoundError
from leadflow.platform.security.guards import require_actor


logger = logging.getLogger("leadflow.cadences")

CHANNEL_ACTIVITY_TYPES: dict[str, str] = {
    "email": "email",
    "linkedin": "linkedin",
    "whatsapp": "whatsapp",
    "call": "call",
    "meeting": "meeting",
    "instagram": "instagram",
}

RUNNING_STATUSES = ("active", "paused")
TERMINAL_STATUSES = frozenset({"completed", "cancelled"})

# action -> (allowed source statuses, target status, message when the source is not allowed)
LIFECYCLE_TRANSITIONS: dict[str, tuple[frozenset[str], str, str]] = {
    "pause": (frozenset({"active"}), "paused", "Apenas cadências ativas podem ser pausadas"),
    "resume": (frozenset({"paused"}), "active", "Apenas cadências pausadas podem ser retomadas"),
    "cancel": (frozenset({"active", "paused"}), "cancelled", "Cadência já finalizada"),
    "complete": (frozenset({"active"}), "completed", "Apenas cadências ativas podem ser concluídas"),
}

SLUG_MAX_LENGTH = 45
SLUG_MAX_ATTEMPTS = 100

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")
_SECONDS_PER_DAY = 86400


def slugify(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value.lower())
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _NON_SLUG_CHARS.sub("-", stripped).strip("-")[:SLUG_MAX_LENGTH]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_progress(completed_steps: int, total_steps: int) -> int:
    if total_steps <= 0:
        return 0
    return round_half_up(100 * completed_steps / total_steps)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _due_at(day: date) -> datetime:
    return datetime.combine(day, dt_time.min, tzinfo=timezone.utc)


def _jsonable(values: dict[str, object]) -> dict[str, object]:
    return {key: str(value) if isinstance(value, uuid.UUID) else value for key, value in values.items()}


def _summary(cadence: Cadence, lead_cadence_count: int = 0) -> CadenceSummaryRead:
    return CadenceSummaryRead(
        id=cadence.id,
        name=cadence.name,
        slug=cadence.slug,
        description=cadence.description,
        duration_days=cadence.duration_days,
        icp_id=cadence.icp_id,
        status=cadence.status,
        step_count=len(cadence.steps),
        lead_cadence_count=lead_cadence_count,
    )


@dataclass(slots=True)
class CadenceService:
    cadence_repository: CadenceRepository = CadenceRepository()

    def slug_exists(self, session: Session, slug: str) -> bool:
        return session.scalar(select(Cadence.id).where(Cadence.slug == slug)) is not None

    def generate_unique_slug(self, session: Session, name: str) -> str:
        base_slug = slugify(name) or "cadencia"
        slug = base_slug
        counter = 1
        while self.slug_exists(session, slug):
            slug = f"{base_slug}-{counter}"
            counter += 1
            if counter > SLUG_MAX_ATTEMPTS:
                slug = f"{base_slug}-{int(time.time() * 1000)}"
                break
        return slug

    def create_cadence(self, session: Session, actor: Actor | None, dto: CadenceCreate) -> CadenceRead:
        actor = require_actor(actor)
        require_actor_user(session, actor)
        slug = dto.slug or self.generate_unique_slug(session, dto.name)
        if self.slug_exists(session, slug):
            raise ConflictError("Slug já existe")
        if dto.icp_id is not None and session.get(ICP, dto.icp_id) is None:
            raise NotFoundError("ICP não encontrado")

        cadence = Cadence(
            name=dto.name,
            slug=slug,
            description=dto.description,
            objective=dto.objective,
            duration_days=dto.duration_days,
            icp_id=dto.icp_id,
            status=dto.status,
            owner_id=actor.user_id,
        )
        try:
            with transaction(session):
                session.add(cadence)
                session.flush()
                audit.record(
                    session, actor, "cadence", cadence.id, "cadence.created", None, {"slug": slug, "status": dto.status}
                )
        except IntegrityError:
            # only a concurrent insert of the same slug maps to a conflict
            if self.slug_exists(session, slug):
                raise ConflictError("Slug já existe") from None
            raise
        session.refresh(cadence)

        logger.info("cadence.created", extra={"cadence_id": str(cadence.id), "actor_user_id": str(actor.user_id)})
        request_revalidation("/admin/cadences")
        return CadenceRead.model_validate(cadence)

    def list_cadences(
        self,
        session: Session,
        actor: Actor | None,
        *,
        status: str | None = None,
        search: str | None = None,
        icp_id: uuid.UUID | None = None,
    ) -> list[CadenceSummaryRead]:
        actor = require_actor(actor)
        stmt: Select[tuple[Cadence]] = select(Cadence).options(selectinload(Cadence.steps))
        if status is not None:
            stmt = stmt.where(Cadence.status == status)
        if icp_id is not None:
            stmt = stmt.where(Cadence.icp_id == icp_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(Cadence.name.ilike(pattern), Cadence.description.ilike(pattern)))

        stmt = self.cadence_repository.apply_owner_scope(stmt, actor)
        cadences = session.scalars(stmt.order_by(Cadence.updated_at.desc())).all()

        usage = dict(
            session.execute(
                select(LeadCadence.cadence_id, func.count(LeadCadence.id))
                .where(LeadCadence.cadence_id.in_([cadence.id for cadence in cadences]))
                .group_by(LeadCadence.cadence_id)
            ).all()
        )
        return [_summary(cadence, usage.get(cadence.id, 0)) for cadence in cadences]

    def list_cadences_for_icp(
        self, session: Session, actor: Actor | None, icp_id: uuid.UUID | None = None
    ) -> list[CadenceSummaryRead]:
        actor = require_actor(actor)
        scope = [Cadence.icp_id.is_(None)]
        if icp_id is not None:
            scope.append(Cadence.icp_id == icp_id)
        stmt = select(Cadence).where(Cadence.status == "active", or_(*scope)).options(selectinload(Cadence.steps))
        stmt = self.cadence_repository.apply_owner_scope(stmt, actor)
        return [_summary(cadence) for cadence in session.scalars(stmt.order_by(Cadence.name.asc())).all()]

    def get_cadence(self, session: Session, actor: Actor | None, cadence_id: uuid.UUID) -> CadenceRead:
        actor = require_actor(actor)
        cadence = self.cadence_repository.get_readable(session, actor, cadence_id, options=[selectinload(Cadence.steps)])
        if cadence is None:
            raise NotFoundError("Cadência não encontrada")
        return CadenceRead.model_validate(cadence)

    def update_cadence(
        self, session: Session, actor: Actor | None, cadence_id: uuid.UUID, dto: CadenceUpdate
    ) -> CadenceRead:
        actor = require_actor(actor)
        cadence = self._get_writable_cadence(session, actor, cadence_id)

        changes = dto.model_dump(exclude_unset=True)
        for required in ("name", "slug", "duration_days", "status"):
            if changes.get(required, "") is None:
                changes.pop(required)
        if "slug" in changes and changes["slug"] != cadence.slug and self.slug_exists(session, changes["slug"]):
            raise ConflictError("Slug já existe")
        if changes.get("icp_id") is not None and session.get(ICP, changes["icp_id"]) is None:
            raise NotFoundError("ICP não encontrado")

        before = {key: getattr(cadence, key) for key in changes}
        try:
            with transaction(session):
                for key, value in changes.items():
                    setattr(cadence, key, value)
                audit.record(
                    session, actor, "cadence", cadence.id, "cadence.updated", _jsonable(before), _jsonable(changes)
                )
        except IntegrityError:
            if "slug" in changes and self.slug_exists(session, changes["slug"]):
                raise ConflictError("Slug já existe") from None
            raise
        session.refresh(cadence)

        request_revalidation("/admin/cadences", f"/admin/cadences/{cadence.id}")
        return CadenceRead.model_validate(cadence)

    def delete_cadence(self, session: Session, actor: Actor | None, cadence_id: uuid.UUID) -> None:
        actor = require_actor(actor)
        cadence = self._get_writable_cadence(session, actor, cadence_id)

        references = session.scalar(
            select(func.count(LeadCadence.id)).where(LeadCadence.cadence_id == cadence.id)
        ) or 0
        if references > 0:
            raise ConflictError(f"Não é possível excluir: {references} lead(s) com cadência aplicada")

        with transaction(session):
            audit.record(session, actor, "cadence", cadence.id, "cadence.deleted", {"slug": cadence.slug}, None)
            session.delete(cadence)

        logger.info("cadence.deleted", extra={"cadence_id": str(cadence_id), "actor_user_id": str(actor.user_id)})
        request_revalidation("/admin/cadences")

    def add_step(
        self, session: Session, actor: Actor | None, cadence_id: uuid.UUID, dto: CadenceStepCreate
    ) -> CadenceStepRead:
        actor = require_actor(actor)
        cadence = self._get_writable_cadence(session, actor, cadence_id)

        order = dto.order
        if order is None:
            max_order = session.scalar(
                select(func.max(CadenceStep.order)).where(
                    CadenceStep.cadence_id == cadence.id,
                    CadenceStep.day_number == dto.day_number,
                )
            )
            order = (max_order if max_order is not None else -1) + 1

        step = CadenceStep(
            cadence_id=cadence.id,
            day_number=dto.day_number,
            channel=dto.channel,
            subject=dto.subject,
            description=dto.description,
            order=order,
        )
        with transaction(session):
            session.add(step)
            session.flush()
            audit.record(
                session,
                actor,
                "cadence_step",
                step.id,
                "cadence_step.created",
                None,
                {"cadence_id": str(cadence.id), "day_number": step.day_number, "channel": step.channel},
            )
        session.refresh(step)

        request_revalidation(f"/admin/cadences/{cadence.id}")
        return CadenceStepRead.model_validate(step)

    def update_step(
        self, session: Session, actor: Actor | None, step_id: uuid.UUID, dto: CadenceStepUpdate
    ) -> CadenceStepRead:
        actor = require_actor(actor)
        step = self._get_writable_step(session, actor, step_id)

        changes = {key: value for key, value in dto.model_dump(exclude_unset=True).items() if value is not None or key == "description"}
        before = {key: getattr(step, key) for key in changes}
        with transaction(session):
            for key, value in changes.items():
                setattr(step, key, value)
            audit.record(session, actor, "cadence_step", step.id, "cadence_step.updated", before, changes)
        session.refresh(step)

        request_revalidation(f"/admin/cadences/{step.cadence_id}")
        return CadenceStepRead.model_validate(step)

    def delete_step(self, session: Session, actor: Actor | None, step_id: uuid.UUID) -> None:
        actor = require_actor(actor)
        step = self._get_writable_step(session, actor, step_id)

        links = session.scalar(
            select(func.count(LeadCadenceActivity.id)).where(LeadCadenceActivity.cadence_step_id == step.id)
        ) or 0
        if links > 0:
            raise ConflictError(f"Não é possível excluir: etapa vinculada a {links} atividade(s) agendada(s)")

        cadence_id = step.cadence_id
        with transaction(session):
            audit.record(
                session, actor, "cadence_step", step.id, "cadence_step.deleted", {"cadence_id": str(cadence_id)}, None
            )
            session.delete(step)

        request_revalidation(f"/admin/cadences/{cadence_id}")

    def reorder_steps(
        self, session: Session, actor: Actor | None, cadence_id: uuid.UUID, dto: CadenceStepReorder
    ) -> list[CadenceStepRead]:
        actor = require_actor(actor)
        cadence = self._get_writable_cadence(session, actor, cadence_id)

        steps_by_id = {step.id: step for step in cadence.steps}
        for position in dto.steps:
            if position.id not in steps_by_id:
                raise NotFoundError("Etapa não encontrada")

        with transaction(session):
            for position in dto.steps:
                step = steps_by_id[position.id]
                step.day_number = position.day_number
                step.order = position.order
            audit.record(
                session,
                actor,
                "cadence",
                cadence.id,
                "cadence.steps_reordered",
                None,
                {"steps": [str(position.id) for position in dto.steps]},
            )

        request_revalidation(f"/admin/cadences/{cadence.id}")
        return self.get_cadence(session, actor, cadence.id).steps

    def _get_writable_cadence(self, session: Session, actor: Actor, cadence_id: uuid.UUID) -> Cadence:
        cadence = self.cadence_repository.get_writable(session, actor, cadence_id, options=[selectinload(Cadence.steps)])
        if cadence is None:
            raise NotFoundError("Cadência não encontrada")
        return cadence

    def _get_writable_step(self, session: Session, actor: Actor, step_id: uuid.UUID) -> CadenceStep:
        step = session.get(CadenceStep, step_id)
        if step is None:
            raise NotFoundError("Etapa não encontrada")
        self._get_writable_cadence(session, actor, step.cadence_id)
        return step


@dataclass(slots=True)
class LeadCadenceService:
    """Applies cadence templates to leads and drives the resulting instances through their lifecycle."""

    lead_repository: LeadRepository = LeadRepository()
    cadence_repository: CadenceRepository = CadenceRepository()
    lead_cadence_repository: LeadCadenceRepository = LeadCadenceRepository()
    clock: Callable[[], datetime] = utcnow

    def apply_cadence_to_lead(
        self, session: Session, actor: Actor | None, lead_id: uuid.UUID, dto: ApplyCadenceRequest
    ) -> ApplyCadenceResult:
        """Create the instance plus one activity and one schedule link per step, atomically.

        ``scheduled_date`` is ``start_date + day_number`` days; the activity is due at
        00:00 UTC of that date.
        """
        actor = require_actor(actor)
        tracer = get_tracer("leadflow.cadences")
        with tracer.start_as_current_span("cadence.apply") as span:
            span.set_attribute("lead_id", str(lead_id))
            span.set_attribute("cadence_id", str(dto.cadence_id))

            lead = self.lead_repository.get_writable(session, actor, lead_id)
            if lead is None:
                raise NotFoundError("Lead não encontrado")

            stmt = (
                select(Cadence)
                .where(Cadence.id == dto.cadence_id, Cadence.status == "active")
                .options(selectinload(Cadence.steps))
            )
            cadence = session.scalar(self.cadence_repository.apply_owner_scope(stmt, actor))
            if cadence is None:
                raise NotFoundError("Cadência não encontrada ou inativa")

            running = session.scalar(
                select(func.count(LeadCadence.id)).where(
                    LeadCadence.lead_id == lead.id,
                    LeadCadence.cadence_id == cadence.id,
                    LeadCadence.status.in_(RUNNING_STATUSES),
                )
            )
            if running:
                raise ConflictError("Esta cadência já está em andamento para este lead")

            start_date = dto.start_date or self.clock().date()
            steps = sorted(cadence.steps, key=lambda item: (item.day_number, item.order))

            require_actor_user(session, actor)
            with transaction(session):
                lead_cadence = LeadCadence(
                    lead_id=lead.id,
                    cadence_id=cadence.id,
                    status="active",
                    start_date=start_date,
                    current_step=0,
                    notes=dto.notes,
                    owner_id=actor.user_id,
                )
                activities: list[Activity] = []
                for step in steps:
                    scheduled_date = start_date + timedelta(days=step.day_number)
                    activity = Activity(
                        type=CHANNEL_ACTIVITY_TYPES.get(step.channel, step.channel),
                        subject=step.subject,
                        description=step.description,
                        due_date=_due_at(scheduled_date),
                        completed=False,
                        lead_id=lead.id,
                        owner_id=actor.user_id,
                    )
                    lead_cadence.activities.append(
                        LeadCadenceActivity(cadence_step_id=step.id, activity=activity, scheduled_date=scheduled_date)
                    )
                    activities.append(activity)

                session.add(lead_cadence)
                session.flush()
                audit.record(
                    session,
                    actor,
                    "lead_cadence",
                    lead_cadence.id,
                    "lead_cadence.applied",
                    None,
                    {
                        "lead_id": str(lead.id),
                        "cadence_id": str(cadence.id),
                        "start_date": start_date.isoformat(),
                        "steps": len(steps),
                    },
                )

            span.set_attribute("steps", len(steps))

        observe_cadence_applied(len(activities))
        logger.info(
            "lead_cadence.applied",
            extra={
                "lead_id": str(lead_id),
                "cadence_id": str(dto.cadence_id),
                "lead_cadence_id": str(lead_cadence.id),
                "steps": len(activities),
                "actor_user_id": str(actor.user_id),
            },
        )
        publish_domain_event(
            "crm.lead_cadence.applied",
            actor,
            {
                "lead_cadence_id": str(lead_cadence.id),
                "lead_id": str(lead_id),
                "cadence_id": str(dto.cadence_id),
                "activity_ids": [str(activity.id) for activity in activities],
            },
        )
        request_revalidation(f"/leads/{lead_id}", "/activities", "/activities/calendar")

        return ApplyCadenceResult(
            lead_cadence=LeadCadenceRead.model_validate(lead_cadence),
            activities=[ActivityRead.model_validate(activity) for activity in activities],
        )

    def get_lead_cadences(
        self, session: Session, actor: Actor | None, lead_id: uuid.UUID
    ) -> list[LeadCadenceProgressRead]:
        actor = require_actor(actor)
        lead = self.lead_repository.get_readable(session, actor, lead_id)
        if lead is None:
            raise NotFoundError("Lead não encontrado")

        rows = session.scalars(
            select(LeadCadence)
            .where(LeadCadence.lead_id == lead.id)
            .options(
                selectinload(LeadCadence.cadence).selectinload(Cadence.steps),
                selectinload(LeadCadence.activities).selectinload(LeadCadenceActivity.activity),
                selectinload(LeadCadence.activities).selectinload(LeadCadenceActivity.cadence_step),
            )
            .order_by(LeadCadence.created_at.desc())
        ).all()
        return [self._with_progress(row) for row in rows]

    def get_available_cadences_for_lead(
        self, session: Session, actor: Actor | None, lead_id: uuid.UUID
    ) -> list[CadenceSummaryRead]:
        actor = require_actor(actor)
        lead = self.lead_repository.get_readable(session, actor, lead_id)
        if lead is None:
            raise NotFoundError("Lead não encontrado")

        linked_icps = select(LeadICP.icp_id).where(LeadICP.lead_id == lead.id)
        running = select(LeadCadence.cadence_id).where(
            LeadCadence.lead_id == lead.id,
            LeadCadence.status.in_(RUNNING_STATUSES),
        )
        stmt = (
            select(Cadence)
            .where(
                Cadence.status == "active",
                or_(Cadence.icp_id.is_(None), Cadence.icp_id.in_(linked_icps)),
                Cadence.id.not_in(running),
            )
            .options(selectinload(Cadence.steps))
        )
        stmt = self.cadence_repository.apply_owner_scope(stmt, actor)
        return [_summary(cadence) for cadence in session.scalars(stmt.order_by(Cadence.name.asc())).all()]

    def pause_lead_cadence(self, session: Session, actor: Actor | None, lead_cadence_id: uuid.UUID) -> LeadCadenceRead:
        actor = require_actor(actor)
        lead_cadence = self._load_for_transition(session, actor, lead_cadence_id, "pause")
        lead_cadence.status = "paused"
        lead_cadence.paused_at = self.clock()
        return self._finish_transition(session, actor, lead_cadence, "pause", "active")

    def resume_lead_cadence(self, session: Session, actor: Actor | None, lead_cadence_id: uuid.UUID) -> LeadCadenceRead:
        """Reactivate a paused instance and push not-yet-due pending activities forward.

        The shift is the pause length rounded half-up to whole days. Activities that were
        completed or already due when the pause began keep their due date.
        """
        actor = require_actor(actor)
        lead_cadence = self._load_for_transition(session, actor, lead_cadence_id, "resume")

        pause_days = 0
        shifted = 0
        if lead_cadence.paused_at is not None:
            paused_at = _as_utc(lead_cadence.paused_at)
            elapsed = (_as_utc(self.clock()) - paused_at).total_seconds() / _SECONDS_PER_DAY
            pause_days = max(0, round_half_up(elapsed))
            if pause_days > 0:
                for link in lead_cadence.activities:
                    activity = link.activity
                    if activity.completed or activity.due_date is None:
                        continue
                    due_date = _as_utc(activity.due_date)
                    if due_date > paused_at:
                        activity.due_date = due_date + timedelta(days=pause_days)
                        shifted += 1

        lead_cadence.status = "active"
        lead_cadence.paused_at = None
        result = self._finish_transition(
            session,
            actor,
            lead_cadence,
            "resume",
            "paused",
            extra={"pause_days": pause_days, "shifted": shifted},
        )
        observe_shifted_activities(shifted)
        request_revalidation("/activities")
        return result

    def cancel_lead_cadence(self, session: Session, actor: Actor | None, lead_cadence_id: uuid.UUID) -> LeadCadenceRead:
        actor = require_actor(actor)
        lead_cadence = self._load_for_transition(session, actor, lead_cadence_id, "cancel")
        from_status = lead_cadence.status
        lead_cadence.status = "cancelled"
        lead_cadence.cancelled_at = self.clock()
        return self._finish_transition(session, actor, lead_cadence, "cancel", from_status)

    def complete_lead_cadence(self, session: Session, actor: Actor | None, lead_cadence_id: uuid.UUID) -> LeadCadenceRead:
        """Mark an active instance completed, whether or not its activities are done."""
        actor = require_actor(actor)
        lead_cadence = self._load_for_transition(session, actor, lead_cadence_id, "complete")
        lead_cadence.status = "completed"
        lead_cadence.completed_at = self.clock()
        return self._finish_transition(session, actor, lead_cadence, "complete", "active")

    def _load_for_transition(self, session: Session, actor: Actor, lead_cadence_id: uuid.UUID, action: str) -> LeadCadence:
        options = []
        if action == "resume":
            options.append(selectinload(LeadCadence.activities).selectinload(LeadCadenceActivity.activity))
        lead_cadence = self.lead_cadence_repository.get_writable(session, actor, lead_cadence_id, options=options)
        if lead_cadence is None:
            raise NotFoundError("Cadência do lead não encontrada")
        if lead_cadence.status in TERMINAL_STATUSES:
            raise ConflictError("Cadência já finalizada")

        allowed_sources, _, message = LIFECYCLE_TRANSITIONS[action]
        if lead_cadence.status not in allowed_sources:
            raise ConflictError(message)
        return lead_cadence

    def _finish_transition(
        self,
        session: Session,
        actor: Actor,
        lead_cadence: LeadCadence,
        action: str,
        from_status: str,
        extra: dict[str, int] | None = None,
    ) -> LeadCadenceRead:
        to_status = LIFECYCLE_TRANSITIONS[action][1]
        with transaction(session):
            audit.record(
                session,
                actor,
                "lead_cadence",
                lead_cadence.id,
                f"lead_cadence.{action}",
                {"status": from_status},
                {"status": to_status, **(extra or {})},
            )
        session.refresh(lead_cadence)

        observe_lead_cadence_transition(from_status, to_status)
        logger.info(
            f"lead_cadence.{to_status}" if action != "resume" else "lead_cadence.resumed",
            extra={
                "lead_cadence_id": str(lead_cadence.id),
                "lead_id": str(lead_cadence.lead_id),
                "from_status": from_status,
                "to_status": to_status,
                "actor_user_id": str(actor.user_id),
                **(extra or {}),
            },
        )
        request_revalidation(f"/leads/{lead_cadence.lead_id}")
        return LeadCadenceRead.model_validate(lead_cadence)

    @staticmethod
    def _with_progress(lead_cadence: LeadCadence) -> LeadCadenceProgressRead:
        links = sorted(lead_cadence.activities, key=lambda link: link.scheduled_date)
        total_steps = len(links)
        completed_steps = sum(1 for link in links if link.activity.completed)

        base = LeadCadenceRead.model_validate(lead_cadence).model_dump()
        return LeadCadenceProgressRead(
            **base,
            cadence=_summary(lead_cadence.cadence),
            activities=[
                LeadCadenceActivityRead(
                    id=link.id,
                    cadence_step_id=link.cadence_step_id,
                    activity_id=link.activity_id,
                    scheduled_date=link.scheduled_date,
                    cadence_step=ScheduledStepRead(
                        id=link.cadence_step.id,
                        day_number=link.cadence_step.day_number,
                        channel=link.cadence_step.channel,
                        subject=link.cadence_step.subject,
                    ),
                    activity=ScheduledActivityRead(
                        id=link.activity.id,
                        type=link.activity.type,
                        subject=link.activity.subject,
                        completed=link.activity.completed,
                        due_date=link.activity.due_date,
                    ),
                )
                for link in links
            ],
            total_steps=total_steps,
            completed_steps=completed_steps,
            progress=compute_progress(completed_steps, total_steps),
        )


cadence_service = CadenceService()
lead_cadence_service = LeadCadenceService()
