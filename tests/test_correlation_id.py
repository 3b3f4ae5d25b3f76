from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow import events
from leadflow.api.deps import get_current_actor
from leadflow.core.database import Base, get_db
from leadflow.crm.models import User
from leadflow.main import app
from leadflow.middleware.correlation_id import MAX_CORRELATION_ID_LENGTH, accepted_correlation_id
from leadflow.models.audit import AuditLog
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
def clear_events() -> Generator[None, None, None]:
    events.published_events.clear()
    yield
    events.published_events.clear()


@pytest.fixture()
def owner(db_session: Session) -> User:
    user = User(name="Sofia SDR", email="sofia@example.com", role="sdr")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def client(db_session: Session, owner: User) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_actor(request: Request) -> Actor:
        return Actor(
            user_id=owner.id,
            role="sdr",
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = override_get_current_actor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_lead(client: TestClient, correlation_id: str) -> dict:
    response = client.post(
        "/api/crm/leads",
        json={"business_name": "Corr Lead", "contacts": [{"name": "Ana Souza"}]},
        headers={"X-Correlation-Id": correlation_id},
    )
    assert response.status_code == 201
    return response.json()


def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.get(f"/api/crm/leads/{uuid.uuid4()}")
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value
    assert body["message"] == "Lead não encontrado"


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get(f"/api/crm/leads/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


def test_audit_uses_request_correlation_id(client: TestClient, db_session: Session) -> None:
    lead = _create_lead(client, "corr-audit-1")

    entry = db_session.scalar(
        select(AuditLog).where(AuditLog.entity_type == "lead", AuditLog.entity_id == lead["id"])
    )
    assert entry is not None
    assert entry.action == "lead.created"
    assert entry.correlation_id == "corr-audit-1"


def test_event_envelope_includes_correlation_id(client: TestClient) -> None:
    lead = _create_lead(client, "corr-setup-1")

    response = client.post(f"/api/crm/leads/{lead['id']}/convert", headers={"X-Correlation-Id": "corr-event-1"})
    assert response.status_code == 200

    converted = [item for item in events.published_events if item.get("event_type") == "crm.lead.converted"]
    assert converted
    assert converted[-1]["correlation_id"] == "corr-event-1"

    revalidations = [item for item in events.published_events if item.get("event_type") == "ui.revalidate"]
    assert revalidations
    assert revalidations[-1]["correlation_id"] == "corr-event-1"
    assert f"/leads/{lead['id']}" in revalidations[-1]["payload"]["paths"]


def test_oversized_correlation_id_is_replaced(client: TestClient, db_session: Session) -> None:
    oversized = "c" * (MAX_CORRELATION_ID_LENGTH + 1)

    response = client.post(
        "/api/crm/leads",
        json={"business_name": "Oversized Corr"},
        headers={"X-Correlation-Id": oversized},
    )

    assert response.status_code == 201
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    assert header_value != oversized
    uuid.UUID(header_value)

    entry = db_session.scalar(select(AuditLog).where(AuditLog.entity_id == response.json()["id"]))
    assert entry is not None
    assert entry.correlation_id == header_value


def test_accepted_correlation_id_rules() -> None:
    assert accepted_correlation_id("  abc-123 ") == "abc-123"
    assert accepted_correlation_id("c" * MAX_CORRELATION_ID_LENGTH) == "c" * MAX_CORRELATION_ID_LENGTH
    assert accepted_correlation_id("c" * (MAX_CORRELATION_ID_LENGTH + 1)) is None
    assert accepted_correlation_id("   ") is None
    assert accepted_correlation_id("abc\x00def") is None
    assert accepted_correlation_id(None) is None
