from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow.api.deps import get_current_actor
from leadflow.cadences.models import LeadCadence
from leadflow.cadences.service import lead_cadence_service
from leadflow.core.database import Base, get_db
from leadflow.crm.models import Activity, User
from leadflow.main import app
from leadflow.platform.security.context import Actor


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


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
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
    monkeypatch.setattr(lead_cadence_service, "clock", fake)
    return fake


@pytest.fixture()
def current_actor(owner: User) -> dict[str, Actor | None]:
    return {"actor": Actor(user_id=owner.id, role="sdr")}


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


def _create_active_cadence(client: TestClient, days: list[int]) -> dict:
    response = client.post("/api/crm/cadences", json={"name": "Outbound 5", "status": "active"})
    assert response.status_code == 201
    cadence = response.json()
    assert cadence["slug"] == "outbound-5"

    for index, day in enumerate(days):
        step = client.post(
            f"/api/crm/cadences/{cadence['id']}/steps",
            json={"day_number": day, "channel": "email", "subject": f"Toque {index + 1}"},
        )
        assert step.status_code == 201
    return cadence


def _create_lead(client: TestClient) -> dict:
    response = client.post(
        "/api/crm/leads",
        json={"business_name": "Acme Ltda", "contacts": [{"name": "Ana Souza", "email": "ana@acme.example.com"}]},
    )
    assert response.status_code == 201
    return response.json()


def _activity_days(client: TestClient, lead_id: str) -> list[str]:
    response = client.get(f"/api/crm/leads/{lead_id}/activities")
    assert response.status_code == 200
    return [item["due_date"][:10] for item in response.json()]


def test_apply_pause_resume_flow_over_http(client: TestClient, clock: FakeClock) -> None:
    cadence = _create_active_cadence(client, [0, 2, 5])
    lead = _create_lead(client)

    available = client.get(f"/api/crm/leads/{lead['id']}/available-cadences")
    assert available.status_code == 200
    assert [item["id"] for item in available.json()] == [cadence["id"]]

    applied = client.post(
        f"/api/crm/leads/{lead['id']}/cadences",
        json={"cadence_id": cadence["id"], "start_date": "2024-01-01"},
    )
    assert applied.status_code == 201
    body = applied.json()
    assert body["lead_cadence"]["status"] == "active"
    assert len(body["activities"]) == 3
    lead_cadence_id = body["lead_cadence"]["id"]
    assert _activity_days(client, lead["id"]) == ["2024-01-01", "2024-01-03", "2024-01-06"]

    clock.now = datetime(2024, 1, 2, tzinfo=timezone.utc)
    paused = client.post(f"/api/crm/lead-cadences/{lead_cadence_id}/pause")
    assert paused.status_code == 200
    assert paused.json()["status"] == "paused"

    clock.now = datetime(2024, 1, 4, tzinfo=timezone.utc)
    resumed = client.post(f"/api/crm/lead-cadences/{lead_cadence_id}/resume")
    assert resumed.status_code == 200
    assert resumed.json()["status"] == "active"
    assert resumed.json()["paused_at"] is None
    assert _activity_days(client, lead["id"]) == ["2024-01-01", "2024-01-05", "2024-01-08"]

    first_activity = body["activities"][0]["id"]
    completed = client.post(f"/api/crm/activities/{first_activity}/complete")
    assert completed.status_code == 200
    assert completed.json()["completed"] is True

    listed = client.get(f"/api/crm/leads/{lead['id']}/cadences")
    assert listed.status_code == 200
    progress = listed.json()[0]
    assert (progress["completed_steps"], progress["total_steps"], progress["progress"]) == (1, 3, 33)
    assert progress["cadence"]["id"] == cadence["id"]
    assert [item["scheduled_date"] for item in progress["activities"]] == ["2024-01-01", "2024-01-03", "2024-01-06"]


def test_reapply_while_running_returns_conflict_envelope(
    client: TestClient, db_session: Session, clock: FakeClock
) -> None:
    cadence = _create_active_cadence(client, [0, 2, 5])
    lead = _create_lead(client)
    first = client.post(f"/api/crm/leads/{lead['id']}/cadences", json={"cadence_id": cadence["id"]})
    assert first.status_code == 201

    second = client.post(
        f"/api/crm/leads/{lead['id']}/cadences",
        json={"cadence_id": cadence["id"]},
        headers={"X-Correlation-Id": "reapply-corr-1"},
    )

    assert second.status_code == 409
    assert second.headers["x-correlation-id"] == "reapply-corr-1"
    assert second.json() == {
        "code": "conflict",
        "message": "Esta cadência já está em andamento para este lead",
        "details": None,
        "correlation_id": "reapply-corr-1",
    }
    assert db_session.scalar(select(func.count(LeadCadence.id))) == 1
    assert db_session.scalar(select(func.count(Activity.id))) == 3


def test_lifecycle_errors_map_to_status_codes(client: TestClient, clock: FakeClock) -> None:
    cadence = _create_active_cadence(client, [0])
    lead = _create_lead(client)
    applied = client.post(f"/api/crm/leads/{lead['id']}/cadences", json={"cadence_id": cadence["id"]})
    lead_cadence_id = applied.json()["lead_cadence"]["id"]

    not_paused = client.post(f"/api/crm/lead-cadences/{lead_cadence_id}/resume")
    assert not_paused.status_code == 409
    assert not_paused.json()["message"] == "Apenas cadências pausadas podem ser retomadas"

    completed = client.post(f"/api/crm/lead-cadences/{lead_cadence_id}/complete")
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    finished = client.post(f"/api/crm/lead-cadences/{lead_cadence_id}/cancel")
    assert finished.status_code == 409
    assert finished.json()["message"] == "Cadência já finalizada"

    missing = client.post(f"/api/crm/lead-cadences/{uuid.uuid4()}/pause")
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"
    assert missing.json()["message"] == "Cadência do lead não encontrada"


def test_cadence_in_use_cannot_be_deleted(client: TestClient, clock: FakeClock) -> None:
    cadence = _create_active_cadence(client, [0])
    lead = _create_lead(client)
    client.post(f"/api/crm/leads/{lead['id']}/cadences", json={"cadence_id": cadence["id"]})

    response = client.delete(f"/api/crm/cadences/{cadence['id']}")

    assert response.status_code == 409
    assert response.json()["message"] == "Não é possível excluir: 1 lead(s) com cadência aplicada"
    assert client.get(f"/api/crm/cadences/{cadence['id']}").status_code == 200


def test_cadence_crud_endpoints(client: TestClient) -> None:
    cadence = _create_active_cadence(client, [0, 3])

    listed = client.get("/api/crm/cadences", params={"status": "active"})
    assert listed.status_code == 200
    assert [(item["name"], item["step_count"]) for item in listed.json()] == [("Outbound 5", 2)]

    patched = client.patch(f"/api/crm/cadences/{cadence['id']}", json={"status": "inactive"})
    assert patched.status_code == 200
    assert patched.json()["status"] == "inactive"

    steps = client.get(f"/api/crm/cadences/{cadence['id']}").json()["steps"]
    reordered = client.put(
        f"/api/crm/cadences/{cadence['id']}/steps/order",
        json={"steps": [{"id": steps[0]["id"], "day_number": 7, "order": 0}]},
    )
    assert reordered.status_code == 200
    assert [step["day_number"] for step in reordered.json()] == [3, 7]

    updated_step = client.patch(f"/api/crm/cadence-steps/{steps[1]['id']}", json={"channel": "whatsapp"})
    assert updated_step.status_code == 200
    assert updated_step.json()["channel"] == "whatsapp"

    assert client.delete(f"/api/crm/cadence-steps/{steps[1]['id']}").status_code == 204
    assert client.delete(f"/api/crm/cadences/{cadence['id']}").status_code == 204
    assert client.get(f"/api/crm/cadences/{cadence['id']}").status_code == 404


def test_invalid_step_payload_is_rejected(client: TestClient) -> None:
    cadence = _create_active_cadence(client, [])

    response = client.post(
        f"/api/crm/cadences/{cadence['id']}/steps",
        json={"day_number": 120, "channel": "fax", "subject": "x"},
    )

    assert response.status_code == 422


def test_unauthenticated_requests_get_unauthorized_envelope(
    client: TestClient, current_actor: dict[str, Actor | None]
) -> None:
    current_actor["actor"] = None

    response = client.get(f"/api/crm/leads/{uuid.uuid4()}/cadences")

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"
    assert response.json()["message"] == "Não autorizado"
