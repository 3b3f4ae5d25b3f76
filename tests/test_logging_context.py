from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow.api.deps import get_current_actor
from leadflow.context import reset_correlation_id, set_correlation_id
from leadflow.core.database import Base, get_db
from leadflow.crm.models import User
from leadflow.logging import JsonLogFormatter
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

    def override_get_current_actor() -> Actor:
        return Actor(user_id=owner.id, role="sdr")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = override_get_current_actor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_request_log_contains_correlation_id_and_route_template(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO)
    response = client.get(f"/api/crm/leads/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [
        record
        for record in caplog.records
        if record.name == "leadflow.request" and record.getMessage() == "http.request"
    ]
    assert records
    record = records[-1]
    assert getattr(record, "correlation_id", None) == "abc-123"
    assert getattr(record, "method", None) == "GET"
    assert getattr(record, "path", None) == "/api/crm/leads/{id}"
    assert getattr(record, "status_code", None) == 404
    assert isinstance(getattr(record, "duration_ms", None), float)


def test_service_logs_carry_request_correlation_id(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    cadence = client.post("/api/crm/cadences", json={"name": "Log Cadence", "status": "active"}).json()
    client.post(
        f"/api/crm/cadences/{cadence['id']}/steps",
        json={"day_number": 1, "channel": "email", "subject": "Apresentação"},
    )
    lead = client.post("/api/crm/leads", json={"business_name": "Log Lead"}).json()

    caplog.set_level(logging.INFO)
    response = client.post(
        f"/api/crm/leads/{lead['id']}/cadences",
        json={"cadence_id": cadence["id"]},
        headers={"X-Correlation-Id": "apply-log-1"},
    )
    assert response.status_code == 201

    applied = [
        record
        for record in caplog.records
        if record.name == "leadflow.cadences" and record.getMessage() == "lead_cadence.applied"
    ]
    assert len(applied) == 1
    assert getattr(applied[0], "correlation_id", None) == "apply-log-1"
    assert getattr(applied[0], "lead_id", None) == lead["id"]
    assert getattr(applied[0], "steps", None) == 1


def test_json_formatter_keeps_known_fields_only() -> None:
    token = set_correlation_id("fmt-1")
    try:
        record = logging.makeLogRecord(
            {
                "name": "leadflow.sharing",
                "levelname": "INFO",
                "msg": "entity.transferred",
                "entity_type": "lead",
                "removed_shares": 2,
                "password": "nope",
                "error": "x" * 600,
            }
        )
        payload = json.loads(JsonLogFormatter().format(record))
    finally:
        reset_correlation_id(token)

    assert payload["logger"] == "leadflow.sharing"
    assert payload["msg"] == "entity.transferred"
    assert payload["correlation_id"] == "fmt-1"
    assert payload["fields"]["entity_type"] == "lead"
    assert payload["fields"]["removed_shares"] == 2
    assert "password" not in payload["fields"]
    assert len(payload["fields"]["error"]) == 500
