from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date

import pytest
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow.cadences.models import Cadence, CadenceStep
from leadflow.cadences.schemas import (
    ApplyCadenceRequest,
    CadenceCreate,
    CadenceStepCreate,
    CadenceStepPosition,
    CadenceStepReorder,
    CadenceStepUpdate,
    CadenceUpdate,
)
from leadflow.cadences import service as cadence_service_module
from leadflow.cadences.service import CadenceService, LeadCadenceService, slugify
from leadflow.core.database import Base
from leadflow.crm.models import ICP, Lead, User
from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import ConflictError, NotFoundError, UnauthorizedError


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def fk_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def owner(db_session: Session) -> User:
    user = User(name="Carla Closer", email="carla@example.com", role="closer")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def actor(owner: User) -> Actor:
    return Actor(user_id=owner.id, role="closer")


def _step(day: int, subject: str, channel: str = "email", order: int | None = None) -> CadenceStepCreate:
    return CadenceStepCreate(day_number=day, channel=channel, subject=subject, order=order)


def test_slugify_strips_accents_and_punctuation() -> None:
    assert slugify("Prospecção Ágil: Outbound!") == "prospeccao-agil-outbound"
    assert slugify("  --Já  vai-- ") == "ja-vai"
    assert len(slugify("a" * 80)) == 45


def test_generate_unique_slug_appends_counter(db_session: Session, actor: Actor) -> None:
    service = CadenceService()

    first = service.create_cadence(db_session, actor, CadenceCreate(name="Prospecção Ágil"))
    second = service.create_cadence(db_session, actor, CadenceCreate(name="Prospecção Ágil"))
    third = service.create_cadence(db_session, actor, CadenceCreate(name="Prospecção ágil"))

    assert [first.slug, second.slug, third.slug] == ["prospeccao-agil", "prospeccao-agil-1", "prospeccao-agil-2"]
    assert service.generate_unique_slug(db_session, "!!") == "cadencia"


def test_create_cadence_rejects_duplicate_slug_and_unknown_icp(db_session: Session, actor: Actor) -> None:
    service = CadenceService()
    service.create_cadence(db_session, actor, CadenceCreate(name="Outbound", slug="outbound"))

    with pytest.raises(ConflictError) as exc:
        service.create_cadence(db_session, actor, CadenceCreate(name="Outro", slug="outbound"))
    assert exc.value.message == "Slug já existe"

    with pytest.raises(NotFoundError) as exc:
        service.create_cadence(db_session, actor, CadenceCreate(name="Com ICP", icp_id=uuid.uuid4()))
    assert exc.value.message == "ICP não encontrado"

    assert db_session.scalar(select(func.count(Cadence.id))) == 1


def test_update_cadence_is_partial_and_rechecks_slug(db_session: Session, actor: Actor) -> None:
    service = CadenceService()
    cadence = service.create_cadence(db_session, actor, CadenceCreate(name="Outbound", slug="outbound"))
    service.create_cadence(db_session, actor, CadenceCreate(name="Inbound", slug="inbound"))

    updated = service.update_cadence(
        db_session, actor, cadence.id, CadenceUpdate(status="active", description="Cadência de 5 toques")
    )
    assert updated.status == "active"
    assert updated.description == "Cadência de 5 toques"
    assert updated.name == "Outbound"
    assert updated.slug == "outbound"

    with pytest.raises(ConflictError):
        service.update_cadence(db_session, actor, cadence.id, CadenceUpdate(slug="inbound"))


def test_add_step_defaults_order_per_day(db_session: Session, actor: Actor) -> None:
    service = CadenceService()
    cadence = service.create_cadence(db_session, actor, CadenceCreate(name="Outbound"))

    first = service.add_step(db_session, actor, cadence.id, _step(0, "Apresentação"))
    second = service.add_step(db_session, actor, cadence.id, _step(0, "Conexão", channel="linkedin"))
    later = service.add_step(db_session, actor, cadence.id, _step(3, "Follow-up", channel="call"))
    explicit = service.add_step(db_session, actor, cadence.id, _step(3, "Reforço", order=7))

    assert (first.order, second.order, later.order, explicit.order) == (0, 1, 0, 7)

    loaded = service.get_cadence(db_session, actor, cadence.id)
    assert [(step.day_number, step.order) for step in loaded.steps] == [(0, 0), (0, 1), (3, 0), (3, 7)]


def test_update_step_changes_only_given_fields(db_session: Session, actor: Actor) -> None:
    service = CadenceService()
    cadence = service.create_cadence(db_session, actor, CadenceCreate(name="Outbound"))
    step = service.add_step(db_session, actor, cadence.id, _step(1, "Apresentação"))

    updated = service.update_step(db_session, actor, step.id, CadenceStepUpdate(subject="Nova apresentação"))

    assert updated.subject == "Nova apresentação"
    assert updated.day_number == 1
    assert updated.channel == "email"


def test_reorder_steps_sets_day_and_order(db_session: Session, actor: Actor) -> None:
    service = CadenceService()
    cadence = service.create_cadence(db_session, actor, CadenceCreate(name="Outbound"))
    a = service.add_step(db_session, actor, cadence.id, _step(0, "Primeiro"))
    b = service.add_step(db_session, actor, cadence.id, _step(2, "Segundo"))

    steps = service.reorder_steps(
        db_session,
        actor,
        cadence.id,
        CadenceStepReorder(
            steps=[
                CadenceStepPosition(id=a.id, day_number=4, order=0),
                CadenceStepPosition(id=b.id, day_number=1, order=0),
            ]
        ),
    )

    assert [step.subject for step in steps] == ["Segundo", "Primeiro"]
    assert [step.day_number for step in steps] == [1, 4]


def test_reorder_steps_rejects_foreign_step(db_session: Session, actor: Actor) -> None:
    service = CadenceService()
    cadence = service.create_cadence(db_session, actor, CadenceCreate(name="Outbound"))
    own = service.add_step(db_session, actor, cadence.id, _step(0, "Primeiro"))
    other = service.create_cadence(db_session, actor, CadenceCreate(name="Outra"))
    foreign = service.add_step(db_session, actor, other.id, _step(0, "Alheio"))

    with pytest.raises(NotFoundError) as exc:
        service.reorder_steps(
            db_session,
            actor,
            cadence.id,
            CadenceStepReorder(
                steps=[
                    CadenceStepPosition(id=own.id, day_number=5, order=0),
                    CadenceStepPosition(id=foreign.id, day_number=1, order=0),
                ]
            ),
        )
    assert exc.value.message == "Etapa não encontrada"
    assert db_session.get(CadenceStep, own.id).day_number == 0


def test_delete_cadence_and_step_guard_references(db_session: Session, owner: User, actor: Actor) -> None:
    service = CadenceService()
    cadence = service.create_cadence(db_session, actor, CadenceCreate(name="Outbound", status="active"))
    step = service.add_step(db_session, actor, cadence.id, _step(0, "Apresentação"))
    lead = Lead(business_name="Acme", owner_id=owner.id)
    db_session.add(lead)
    db_session.commit()
    LeadCadenceService().apply_cadence_to_lead(
        db_session, actor, lead.id, ApplyCadenceRequest(cadence_id=cadence.id, start_date=date(2024, 1, 1))
    )

    with pytest.raises(ConflictError) as exc:
        service.delete_cadence(db_session, actor, cadence.id)
    assert exc.value.message == "Não é possível excluir: 1 lead(s) com cadência aplicada"

    with pytest.raises(ConflictError) as exc:
        service.delete_step(db_session, actor, step.id)
    assert exc.value.message == "Não é possível excluir: etapa vinculada a 1 atividade(s) agendada(s)"

    assert db_session.get(Cadence, cadence.id) is not None
    assert db_session.get(CadenceStep, step.id) is not None


def test_delete_unreferenced_cadence_removes_steps(db_session: Session, actor: Actor) -> None:
    service = CadenceService()
    cadence = service.create_cadence(db_session, actor, CadenceCreate(name="Outbound"))
    service.add_step(db_session, actor, cadence.id, _step(0, "Apresentação"))
    removable = service.add_step(db_session, actor, cadence.id, _step(1, "Descartável"))

    service.delete_step(db_session, actor, removable.id)
    assert [step.subject for step in service.get_cadence(db_session, actor, cadence.id).steps] == ["Apresentação"]

    service.delete_cadence(db_session, actor, cadence.id)
    with pytest.raises(NotFoundError):
        service.get_cadence(db_session, actor, cadence.id)
    assert db_session.scalar(select(func.count(CadenceStep.id))) == 0


def test_list_cadences_filters_and_counts(db_session: Session, owner: User, actor: Actor) -> None:
    service = CadenceService()
    icp = ICP(name="SaaS", slug="saas", owner_id=owner.id)
    db_session.add(icp)
    db_session.commit()

    outbound = service.create_cadence(
        db_session, actor, CadenceCreate(name="Outbound SaaS", status="active", icp_id=icp.id)
    )
    service.add_step(db_session, actor, outbound.id, _step(0, "Apresentação"))
    service.add_step(db_session, actor, outbound.id, _step(2, "Follow-up"))
    service.create_cadence(db_session, actor, CadenceCreate(name="Reativação", description="Clientes inativos"))

    active = service.list_cadences(db_session, actor, status="active")
    assert [(item.name, item.step_count, item.lead_cadence_count) for item in active] == [("Outbound SaaS", 2, 0)]

    searched = service.list_cadences(db_session, actor, search="inativos")
    assert [item.name for item in searched] == ["Reativação"]

    by_icp = service.list_cadences(db_session, actor, icp_id=icp.id)
    assert [item.id for item in by_icp] == [outbound.id]

    for_icp = service.list_cadences_for_icp(db_session, actor, icp.id)
    assert [item.id for item in for_icp] == [outbound.id]


def test_cadences_are_owner_scoped(db_session: Session, actor: Actor) -> None:
    service = CadenceService()
    cadence = service.create_cadence(db_session, actor, CadenceCreate(name="Privada"))
    stranger = User(name="Outro", email="outro@example.com", role="sdr")
    admin = User(name="Admin", email="admin@example.com", role="admin")
    db_session.add_all([stranger, admin])
    db_session.commit()

    with pytest.raises(NotFoundError) as exc:
        service.get_cadence(db_session, Actor(user_id=stranger.id, role="sdr"), cadence.id)
    assert exc.value.message == "Cadência não encontrada"
    assert service.list_cadences(db_session, Actor(user_id=stranger.id, role="sdr")) == []

    assert service.get_cadence(db_session, Actor(user_id=admin.id, role="admin"), cadence.id).id == cadence.id


def test_create_cadence_requires_actor_user_row(fk_session: Session) -> None:
    ghost = Actor(user_id=uuid.uuid4(), role="admin")

    with pytest.raises(UnauthorizedError) as exc:
        CadenceService().create_cadence(fk_session, ghost, CadenceCreate(name="Outbound"))

    assert exc.value.message == "Usuário autenticado não encontrado"
    assert fk_session.scalar(select(func.count(Cadence.id))) == 0


def test_create_cadence_foreign_key_violation_is_not_a_slug_conflict(
    fk_session: Session, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(cadence_service_module, "require_actor_user", lambda session, actor: None)
    ghost = Actor(user_id=uuid.uuid4(), role="admin")

    with pytest.raises(IntegrityError):
        CadenceService().create_cadence(fk_session, ghost, CadenceCreate(name="Outbound", slug="outbound"))

    assert fk_session.scalar(select(func.count(Cadence.id))) == 0


def test_concurrent_slug_insert_maps_to_conflict(
    fk_session: Session, monkeypatch: pytest.MonkeyPatch
) -> None:
    user = User(name="Carla Closer", email="carla@example.com", role="closer")
    fk_session.add(user)
    fk_session.commit()
    actor = Actor(user_id=user.id, role="closer")
    service = CadenceService()
    service.create_cadence(fk_session, actor, CadenceCreate(name="Outbound", slug="outbound"))

    real_slug_exists = CadenceService.slug_exists
    calls: list[str] = []

    def slug_missing_once(self, session, slug):  # type: ignore[no-untyped-def]
        calls.append(slug)
        if len(calls) == 1:
            return False
        return real_slug_exists(self, session, slug)

    monkeypatch.setattr(CadenceService, "slug_exists", slug_missing_once)

    with pytest.raises(ConflictError) as exc:
        service.create_cadence(fk_session, actor, CadenceCreate(name="Outro", slug="outbound"))

    assert exc.value.message == "Slug já existe"
    assert calls == ["outbound", "outbound"]
    assert fk_session.scalar(select(func.count(Cadence.id))) == 1
