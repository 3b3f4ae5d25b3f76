from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow.api.deps import get_current_actor
from leadflow.core.config import get_settings
from leadflow.core.database import Base, get_db
from leadflow.crm.models import Lead, User
from leadflow.main import app
from leadflow.platform.security.context import Actor


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


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def admin(db_session: Session) -> User:
    user = User(name="Ana Admin", email="ana@example.com", role="admin")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def current_actor(admin: User) -> dict[str, Actor | None]:
    return {"actor": Actor(user_id=admin.id, role="admin", correlation_id="metrics-corr-1")}


@pytest.fixture()
def client(db_session: Session, current_actor: dict[str, Actor | None]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_actor() -> Actor | None:
        return current_actor["actor"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = override_get_current_actor

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_cadence_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    cadence = client.post("/api/crm/cadences", json={"name": "Metrics Cadence", "status": "active"})
    assert cadence.status_code == 201
    step = client.post(
        f"/api/crm/cadences/{cadence.json()['id']}/steps",
        json={"day_number": 0, "channel": "call", "subject": "Ligação inicial"},
    )
    assert step.status_code == 201
    lead = client.post("/api/crm/leads", json={"business_name": "Metrics Lead"})
    assert lead.status_code == 201

    applied = client.post(
        f"/api/crm/leads/{lead.json()['id']}/cadences",
        json={"cadence_id": cadence.json()["id"]},
    )
    assert applied.status_code == 201
    paused = client.post(f"/api/crm/lead-cadences/{applied.json()['lead_cadence']['id']}/pause")
    assert paused.status_code == 200

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "crm_cadence_applications_total" in body
    assert "crm_cadence_activities_created_total" in body
    assert 'from_status="active",to_status="paused"' in body

    assert 'path="/health"' in body
    assert 'path="/api/crm/leads/{id}/cadences"' in body
    assert 'path="/api/crm/lead-cadences/{id}/pause"' in body


def test_sharing_metrics_keep_entity_type_label(client: TestClient, db_session: Session) -> None:
    grantee = User(name="Bruno", email="bruno@example.com", role="sdr")
    owner = User(name="Otávio", email="otavio@example.com", role="sdr")
    db_session.add_all([grantee, owner])
    db_session.commit()
    lead = Lead(business_name="Acme", owner_id=owner.id)
    db_session.add(lead)
    db_session.commit()

    shared = client.post(f"/api/crm/entities/lead/{lead.id}/shares", json={"user_id": str(grantee.id)})
    assert shared.status_code == 201

    body = client.get("/metrics").text
    assert 'entity_type="lead",operation="share"' in body
    assert 'path="/api/crm/entities/{entity_type}/{id}/shares"' in body


def test_metrics_require_admin(client: TestClient, current_actor: dict[str, Actor | None], admin: User) -> None:
    current_actor["actor"] = Actor(user_id=admin.id, role="sdr")
    assert client.get("/metrics").status_code == 403

    current_actor["actor"] = None
    assert client.get("/metrics").status_code == 403


def test_metrics_disabled_returns_not_found(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    assert client.get("/metrics").status_code == 404
