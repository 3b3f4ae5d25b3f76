from __future__ import annotations

import os
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from leadflow.api.deps import get_current_actor
from leadflow.core.database import Base, get_db
from leadflow.crm.models import User
from leadflow.main import app
from leadflow.otel import setup_inmemory_otel
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
def span_exporter() -> Generator[InMemorySpanExporter, None, None]:
    exporter = setup_inmemory_otel()
    exporter.clear()
    yield exporter
    exporter.clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    owner = User(name="Sofia SDR", email="sofia@example.com", role="sdr")
    db_session.add(owner)
    db_session.commit()

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_actor() -> Actor:
        return Actor(user_id=owner.id, role="sdr")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = override_get_current_actor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_apply_cadence_emits_span_with_ids(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    cadence = client.post("/api/crm/cadences", json={"name": "Span Cadence", "status": "active"}).json()
    for day in (0, 3):
        client.post(
            f"/api/crm/cadences/{cadence['id']}/steps",
            json={"day_number": day, "channel": "email", "subject": f"Dia {day}"},
        )
    lead = client.post("/api/crm/leads", json={"business_name": "Span Lead"}).json()
    span_exporter.clear()

    response = client.post(
        f"/api/crm/leads/{lead['id']}/cadences",
        json={"cadence_id": cadence["id"]},
        headers={"X-Correlation-Id": "span-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    apply_spans = [span for span in spans if span.name == "cadence.apply"]
    assert len(apply_spans) == 1
    attributes = apply_spans[0].attributes
    assert attributes.get("lead_id") == lead["id"]
    assert attributes.get("cadence_id") == cadence["id"]
    assert attributes.get("steps") == 2

    assert any(span.attributes.get("correlation_id") == "span-corr-1" for span in spans)


def test_request_span_has_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/health", headers={"X-Correlation-Id": "health-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "health-corr-1" for span in spans)
