"""HTTP surface: routing, header identity and the error-to-status mapping."""
from datetime import date, time, timedelta

import pytest
from fastapi.testclient import TestClient

from infrabook.api.deps import get_document_store, get_notifier
from infrabook.api.routes import admin as admin_routes
from infrabook.core.constants import QUESTION_TEXT
from infrabook.main import app
from infrabook.models.question import QuestionDefinition
from tests.helpers import MANAGER_EMAIL, USER_EMAIL, FakeNotifier, MemoryDocumentStore, make_slot

MANAGER = {"X-User-Email": MANAGER_EMAIL, "X-User-Role": "manager"}
USER = {"X-User-Email": USER_EMAIL, "X-User-Role": "user"}
ADMIN = {"X-User-Email": "admin@example.com", "X-User-Role": "admin"}

NEXT_WEEK = date.today() + timedelta(days=7)


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def client(fake_notifier, store):
    app.dependency_overrides[get_notifier] = lambda: fake_notifier
    app.dependency_overrides[get_document_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _generate(client, infra_id, headers=MANAGER):
    return client.post(
        f"/infrastructures/{infra_id}/timeslots/generate",
        json={
            "start_date": NEXT_WEEK.isoformat(),
            "end_date": NEXT_WEEK.isoformat(),
            "daily_start_time": "09:00",
            "slot_duration": 60,
            "slots_per_day": 3,
        },
        headers=headers,
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_generate_list_claim_approve(client, infra, fake_notifier):
    response = _generate(client, infra.id)
    assert response.status_code == 201
    assert response.json()["created"] == 3
    assert _generate(client, infra.id).json()["skipped"] == 3

    available = client.get(f"/infrastructures/{infra.id}/timeslots/available").json()
    assert [s["start_time"] for s in available] == ["09:00", "10:00", "11:00"]

    slot_id = available[0]["id"]
    response = client.post("/bookings", json={"slot_id": slot_id, "purpose": "calibration"}, headers=USER)
    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["status"] == "pending"
    assert booking["claimant"] == USER_EMAIL
    assert fake_notifier.events() == ["booking_requested"]

    response = client.post(f"/bookings/{slot_id}/decision", json={"action": "approve"}, headers=MANAGER)
    assert response.status_code == 200
    assert response.json()["booking"]["status"] == "approved"

    mine = client.get("/bookings/mine", headers=USER).json()
    assert [(b["id"], b["status"]) for b in mine] == [(slot_id, "approved")]


def test_double_claim_is_a_conflict(client, db, infra):
    slot = make_slot(db, infra.id, day=NEXT_WEEK)
    assert client.post("/bookings", json={"slot_id": slot.id}, headers=USER).status_code == 201

    response = client.post("/bookings", json={"slot_id": slot.id}, headers={"X-User-Email": "b@example.com"})
    assert response.status_code == 409
    assert response.json()["error"] == "slot_unavailable"


def test_missing_identity_is_forbidden(client, db, infra):
    slot = make_slot(db, infra.id, day=NEXT_WEEK)
    response = client.post("/bookings", json={"slot_id": slot.id})
    assert response.status_code == 403


def test_generate_requires_manager(client, infra):
    response = _generate(client, infra.id, headers=USER)
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_unknown_infrastructure_is_404(client):
    assert _generate(client, 999, headers=ADMIN).status_code == 404


def test_missing_answers_lists_question_ids(client, db, infra, document_question):
    slot = make_slot(db, infra.id, day=NEXT_WEEK)
    response = client.post("/bookings", json={"slot_id": slot.id}, headers=USER)
    assert response.status_code == 422
    assert response.json()["question_ids"] == [document_question.id]


def test_upload_document_then_answer_with_handle(client, db, infra, document_question, store):
    response = client.post("/documents?filename=cert.pdf", content=b"%PDF-1.4", headers=USER)
    assert response.status_code == 201
    handle = response.json()["handle"]
    assert store.files[handle] == (b"%PDF-1.4", "cert.pdf")

    slot = make_slot(db, infra.id, day=NEXT_WEEK)
    response = client.post(
        "/bookings",
        json={"slot_id": slot.id, "answers": {str(document_question.id): {"document_handle": handle}}},
        headers=USER,
    )
    assert response.status_code == 201

    details = client.get(f"/bookings/{slot.id}", headers=MANAGER).json()
    assert details["answers"][0]["document_handle"] == handle
    assert client.get(f"/bookings/{slot.id}", headers={"X-User-Email": "x@example.com"}).status_code == 403


def test_email_action_link(client, db, infra, fake_notifier):
    slot = make_slot(db, infra.id, day=NEXT_WEEK)
    client.post("/bookings", json={"slot_id": slot.id}, headers=USER)
    reject_url = fake_notifier.sent[0][2]["reject_url"]
    token = reject_url.rsplit("/", 1)[-1]

    assert client.post(f"/email-action/approve/{token}").status_code == 400
    response = client.post(f"/email-action/reject/{token}")
    assert response.status_code == 200
    assert response.json()["booking"]["status"] == "rejected"
    assert client.post(f"/email-action/reject/{token}").json()["error"] == "invalid_token"


def test_cancel_started_booking_maps_to_400(client, db, infra):
    # Started at midnight today, so it is past the cancellation deadline whatever the wall clock says
    slot = make_slot(db, infra.id, day=date.today(), start=time(0, 0), end=time(0, 1), status="pending", claimant=USER_EMAIL)
    response = client.post(f"/bookings/{slot.id}/decision", json={"action": "cancel"}, headers=USER)
    assert response.status_code == 400
    assert response.json()["error"] == "within_cancellation_window"


def test_guest_request_and_confirm(client, db, infra, fake_notifier):
    db.add(QuestionDefinition(infrastructure_id=infra.id, question_text="Group", question_type=QUESTION_TEXT))
    db.commit()
    slot = make_slot(db, infra.id, day=NEXT_WEEK)
    body = {"infrastructure_id": infra.id, "slot_id": slot.id, "email": "guest@example.org", "purpose": "visit"}

    response = client.post("/guest/request", json=body)
    assert response.status_code == 202
    token = fake_notifier.sent[0][2]["confirm_url"].rsplit("/", 1)[-1]

    assert client.post("/guest/request", json=body).status_code == 429

    response = client.post(f"/guest/confirm/{token}")
    assert response.status_code == 200
    assert response.json()["booking"]["claimant"] == "guest@example.org"


def test_cancel_open_timeslots_and_entries(client, db, infra):
    a = make_slot(db, infra.id, day=NEXT_WEEK)
    b = make_slot(db, infra.id, day=NEXT_WEEK, start=time(11, 0), end=time(12, 0))
    response = client.post("/timeslots/cancel", json={"ids": [a.id, b.id]}, headers=MANAGER)
    assert response.json()["canceled"] == 2

    entries = client.get(f"/infrastructures/{infra.id}/entries?status=canceled", headers=MANAGER).json()
    assert len(entries) == 2
    assert client.get(f"/infrastructures/{infra.id}/entries", headers=USER).status_code == 403


def test_force_sweep(client, db, infra):
    make_slot(db, infra.id, day=date.today() - timedelta(days=1))
    response = client.post("/admin/sweep", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["expired_timeslots_count"] == 1
    assert client.post("/admin/sweep", headers=USER).status_code == 403


def test_upload_rejects_oversized_and_empty_documents(client, store, monkeypatch):
    monkeypatch.setattr(admin_routes, "MAX_DOCUMENT_BYTES", 4)
    response = client.post("/documents?filename=big.bin", content=b"0123456789", headers=USER)
    assert response.status_code == 400
    assert response.json()["message"] == "Document too large"

    assert client.post("/documents", content=b"", headers=USER).status_code == 400
    assert store.files == {}
