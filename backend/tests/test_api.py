import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_dispatcher
from app.db.session import get_db
from app.main import app
from conftest import FakeDispatcher


@pytest.fixture
def fake_dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def client(session_factory, fake_dispatcher):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: fake_dispatcher
    # No context manager: lifespan (scheduler) does not run
    yield TestClient(app)
    app.dependency_overrides.clear()


def _book(client, patient_id: int, practitioner_id: int, time: str = "10:00", **extra):
    body = {"practitioner_id": practitioner_id, "date": "2030-01-07", "time": time, **extra}
    return client.post("/bookings", json=body, headers={"X-Patient-Id": str(patient_id)})


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_availability_lists_slots(client, practitioner) -> None:
    response = client.get(f"/availability/{practitioner.id}", params={"date": "2030-01-07"})

    assert response.status_code == 200
    assert response.json() == {"available": True, "slots": ["09:00", "10:00", "11:00"], "reason": None}


def test_availability_unknown_practitioner_is_404(client) -> None:
    response = client.get("/availability/999", params={"date": "2030-01-07"})

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_calendar_overview(client, practitioner) -> None:
    response = client.get(f"/availability/{practitioner.id}/calendar")

    assert response.status_code == 200
    assert response.json()["non_working_days"] == [1, 2, 3, 4, 5, 6]


def test_create_booking_requires_patient_header(client, practitioner) -> None:
    response = client.post("/bookings", json={"practitioner_id": practitioner.id, "date": "2030-01-07", "time": "10:00"})

    assert response.status_code == 401


def test_create_booking_then_slot_disappears(client, patient, practitioner, fake_dispatcher) -> None:
    response = _book(client, patient.id, practitioner.id, motive="Insomnia")

    assert response.status_code == 201
    assert response.json()["status"] == "pending"
    assert fake_dispatcher.events() == ["created"]
    slots = client.get(f"/availability/{practitioner.id}", params={"date": "2030-01-07"}).json()["slots"]
    assert slots == ["09:00", "11:00"]


def test_double_booking_is_409(client, patient, other_patient, practitioner) -> None:
    _book(client, patient.id, practitioner.id)

    response = _book(client, other_patient.id, practitioner.id)

    assert response.status_code == 409
    assert response.json()["code"] == "slot_unavailable"


def test_booking_off_the_hour_is_409(client, patient, practitioner) -> None:
    response = _book(client, patient.id, practitioner.id, time="10:30")

    assert response.status_code == 409
    assert "not on the hour" in response.json()["detail"]


def test_get_and_list_bookings(client, patient, practitioner) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]

    one = client.get(f"/bookings/{booking_id}")
    listed = client.get("/bookings", params={"patient_id": patient.id})

    assert one.status_code == 200
    assert one.json()["session_link"] == f"/perfil?sala=sesion-{patient.id}-{practitioner.id}"
    assert [b["booking_id"] for b in listed.json()["bookings"]] == [booking_id]


def test_get_unknown_booking_is_404(client) -> None:
    response = client.get("/bookings/999")

    assert response.status_code == 404
    assert response.json() == {"detail": "Booking 999 not found", "code": "not_found"}


def test_reschedule_and_cancel(client, patient, practitioner, fake_dispatcher) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]
    headers = {"X-Patient-Id": str(patient.id)}

    moved = client.post(f"/bookings/{booking_id}/reschedule", json={"date": "2030-01-07", "time": "11:00"}, headers=headers)
    cancelled = client.post(f"/bookings/{booking_id}/cancel", headers=headers)

    assert moved.status_code == 200
    assert moved.json()["time"] == "11:00"
    assert cancelled.json() == {"booking_id": booking_id, "status": "cancelled"}
    assert fake_dispatcher.events() == ["created", "rescheduled", "cancelled"]


def test_cancel_someone_elses_booking_is_404(client, patient, other_patient, practitioner) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]

    response = client.post(f"/bookings/{booking_id}/cancel", headers={"X-Patient-Id": str(other_patient.id)})

    assert response.status_code == 404


def test_join_by_both_parties_completes(client, patient, practitioner) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]

    first = client.post(f"/bookings/{booking_id}/join", json={"party": "practitioner"})
    second = client.post(f"/bookings/{booking_id}/join", json={"party": "patient"})

    assert first.json()["status"] == "pending"
    assert second.json() == {"booking_id": booking_id, "status": "completed"}


def test_join_with_bad_party_is_400(client, patient, practitioner) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]

    response = client.post(f"/bookings/{booking_id}/join", json={"party": "guest"})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_window_management(client, practitioner) -> None:
    created = client.post(
        f"/practitioners/{practitioner.id}/windows",
        json={"day_of_week": 1, "start_time": "16:00", "end_time": "18:00"},
    )
    window_id = created.json()["id"]

    listed = client.get(f"/practitioners/{practitioner.id}/windows").json()["windows"]
    tuesday = client.get(f"/availability/{practitioner.id}", params={"date": "2030-01-08"}).json()
    deleted = client.delete(f"/practitioners/{practitioner.id}/windows/{window_id}")

    assert created.status_code == 201
    assert [w["day_of_week"] for w in listed] == [0, 1]
    assert tuesday["slots"] == ["16:00", "17:00"]
    assert deleted.json() == {"ok": True}


def test_window_with_inverted_times_is_400(client, practitioner) -> None:
    response = client.post(
        f"/practitioners/{practitioner.id}/windows",
        json={"day_of_week": 1, "start_time": "18:00", "end_time": "16:00"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_window_with_bad_weekday_is_422(client, practitioner) -> None:
    response = client.post(
        f"/practitioners/{practitioner.id}/windows",
        json={"day_of_week": 9, "start_time": "16:00", "end_time": "18:00"},
    )

    assert response.status_code == 422


def test_blackout_defaults_end_date_and_blocks_availability(client, practitioner) -> None:
    created = client.post(f"/practitioners/{practitioner.id}/blackouts", json={"start_date": "2030-01-07", "reason": "Congress"})

    day = client.get(f"/availability/{practitioner.id}", params={"date": "2030-01-07"}).json()
    blackout_id = created.json()["id"]
    deleted = client.delete(f"/practitioners/{practitioner.id}/blackouts/{blackout_id}")
    reopened = client.get(f"/availability/{practitioner.id}", params={"date": "2030-01-07"}).json()

    assert created.status_code == 201
    assert created.json()["end_date"] == "2030-01-07"
    assert day == {"available": False, "slots": [], "reason": "blackout"}
    assert deleted.status_code == 200
    assert reopened["available"] is True


def test_payment_completed_creates_confirmed_booking(client, patient, practitioner, fake_dispatcher) -> None:
    response = client.post(
        "/payments/completed",
        json={"patient_id": patient.id, "practitioner_id": practitioner.id, "date": "2030-01-07", "time": "09:00"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert fake_dispatcher.events() == ["created"]


def test_payment_completed_confirms_existing_booking(client, patient, practitioner) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]

    response = client.post(
        "/payments/completed",
        json={
            "patient_id": patient.id,
            "practitioner_id": practitioner.id,
            "date": "2030-01-07",
            "time": "10:00",
            "booking_id": booking_id,
        },
    )

    assert response.json() == {"booking_id": booking_id, "status": "confirmed"}


def test_practitioner_note_read_and_write(client, patient, practitioner) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]
    headers = {"X-Practitioner-Id": str(practitioner.id)}

    assert client.get(f"/bookings/{booking_id}/note", headers=headers).json() == {"booking_id": booking_id, "text": ""}
    saved = client.put(f"/bookings/{booking_id}/note", json={"text": "Discussed coping plan"}, headers=headers)
    assert saved.status_code == 200
    assert client.get(f"/bookings/{booking_id}/note", headers=headers).json()["text"] == "Discussed coping plan"
    assert "practitioner_note" not in client.get(f"/bookings/{booking_id}").json()


def test_practitioner_note_of_another_practitioner_is_404(client, patient, practitioner, other_practitioner) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]
    headers = {"X-Practitioner-Id": str(other_practitioner.id)}

    assert client.get(f"/bookings/{booking_id}/note", headers=headers).status_code == 404
    response = client.put(f"/bookings/{booking_id}/note", json={"text": "x"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_practitioner_note_requires_practitioner_header(client, patient, practitioner) -> None:
    booking_id = _book(client, patient.id, practitioner.id).json()["booking_id"]

    assert client.get(f"/bookings/{booking_id}/note").status_code == 401
