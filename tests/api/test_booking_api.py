from datetime import time, timedelta

from hospital_queue.db.locking import StorageUnavailableError
from hospital_queue.models import Role
from hospital_queue.routers import bookings as bookings_router


def _registration(**overrides):
    payload = {
        "full_name": "Sunil Fernando",
        "age": 42,
        "gender": "Male",
        "address": "45 Lake Road, Colombo 05",
        "nic_number": "198212345678",
        "phone_number": "+94771234567",
    }
    payload.update(overrides)
    return payload


def _book(client, headers, template, booking_day, **extra):
    payload = {
        "category": template.category.value,
        "booking_date": booking_day.isoformat(),
        "template_id": template.id,
    }
    payload.update(extra)
    return client.post("/bookings", json=payload, headers=headers)


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_self_registration_and_duplicate(client):
    res = client.post("/patients", json=_registration())
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["unique_patient_id"].startswith("AMH")
    assert body["phone_number"] == "+94771234567"
    assert body["created_by_user_id"] is None

    again = client.post("/patients", json=_registration(phone_number="0779999999"))
    assert again.status_code == 409, again.text


def test_minor_needs_guardian(client):
    res = client.post("/patients", json=_registration(age=12))
    assert res.status_code == 422


def test_staff_registration_records_creator(client, make_user, staff_headers):
    clerk = make_user(Role.user_creator)
    res = client.post("/patients", json=_registration(), headers=staff_headers(clerk))
    assert res.status_code == 201, res.text
    assert res.json()["created_by_user_id"] == clerk.id


def test_patient_login_with_nic_suffix(client, make_patient):
    patient = make_patient()
    res = client.post(
        "/auth/patient-login",
        json={"unique_patient_id": patient.unique_patient_id, "nic_last4": patient.nic_number[-4:]},
    )
    assert res.status_code == 200, res.text
    token = res.json()["access_token"]

    me = client.get("/patients/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200, me.text
    assert me.json()["id"] == patient.id

    bad = client.post(
        "/auth/patient-login",
        json={"unique_patient_id": patient.unique_patient_id, "nic_last4": "0000"},
    )
    assert bad.status_code == 401


def test_patient_books_then_duplicate_rejected(
    client, make_patient, patient_headers, general_template, make_template, booking_day
):
    patient = make_patient()
    headers = patient_headers(patient)

    res = _book(client, headers, general_template, booking_day)
    assert res.status_code == 201, res.text
    assert res.json()["slot_number"] == 1

    other = make_template(start=time(13, 0), end=time(15, 0))
    again = _book(client, headers, other, booking_day)
    assert again.status_code == 409, again.text
    assert again.headers["X-Rejection-Code"] == "PatientAlreadyBooked"


def test_full_slot_and_unbookable_date(
    client, make_patient, patient_headers, make_template, booking_day, today
):
    template = make_template(capacity=1)
    assert _book(client, patient_headers(make_patient()), template, booking_day).status_code == 201

    full = _book(client, patient_headers(make_patient()), template, booking_day)
    assert full.status_code == 409
    assert full.headers["X-Rejection-Code"] == "SlotFull"

    past = _book(client, patient_headers(make_patient()), template, today - timedelta(days=1))
    assert past.status_code == 400
    assert past.headers["X-Rejection-Code"] == "DateNotBookable"

    missing = client.post(
        "/bookings",
        json={"category": "general", "booking_date": booking_day.isoformat(), "template_id": 9999},
        headers=patient_headers(make_patient()),
    )
    assert missing.status_code == 404
    assert missing.headers["X-Rejection-Code"] == "TemplateNotFound"


def test_patient_cannot_book_for_someone_else(
    client, make_patient, patient_headers, general_template, booking_day
):
    patient = make_patient()
    other = make_patient()
    res = _book(client, patient_headers(patient), general_template, booking_day, patient_id=other.id)
    assert res.status_code == 403


def test_staff_booking_requires_patient_and_permission(
    client, make_user, make_patient, staff_headers, general_template, booking_day
):
    opd = make_user(Role.opd_admin)
    clinic_admin = make_user(Role.clinic_admin)
    patient = make_patient()

    missing = _book(client, staff_headers(opd), general_template, booking_day)
    assert missing.status_code == 400

    forbidden = _book(client, staff_headers(clinic_admin), general_template, booking_day, patient_id=patient.id)
    assert forbidden.status_code == 403

    ok = _book(client, staff_headers(opd), general_template, booking_day, patient_id=patient.id)
    assert ok.status_code == 201, ok.text


def test_calendar_reflects_bookings(client, make_patient, patient_headers, general_template, booking_day):
    _book(client, patient_headers(make_patient()), general_template, booking_day)

    res = client.get("/calendar/availability", params={"date": booking_day.isoformat(), "category": "general"})
    assert res.status_code == 200, res.text
    [row] = res.json()
    assert row["template_id"] == general_template.id
    assert row["booked_count"] == 1
    assert row["available"] == general_template.capacity - 1

    dates = client.get("/calendar/dates", params={"category": "general"})
    assert booking_day.isoformat() in dates.json()

    bookable = client.get("/calendar/bookable", params={"date": booking_day.isoformat(), "category": "general"})
    assert bookable.json()["bookable"] is True


def test_patient_cancel_and_history(client, make_patient, patient_headers, general_template, booking_day):
    patient = make_patient()
    headers = patient_headers(patient)
    booking_id = _book(client, headers, general_template, booking_day).json()["booking_id"]

    upcoming = client.get(f"/patients/{patient.id}/bookings/upcoming", headers=headers)
    assert [item["id"] for item in upcoming.json()] == [booking_id]

    res = client.post(f"/bookings/{booking_id}/cancel", json={"reason": "Feeling better"}, headers=headers)
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "cancelled"
    assert res.json()["cancellation_reason"] == "Feeling better"

    again = client.post(f"/bookings/{booking_id}/cancel", headers=headers)
    assert again.status_code == 409
    assert again.headers["X-Rejection-Code"] == "InvalidStatusTransition"

    history = client.get(f"/patients/{patient.id}/bookings", params={"status": "cancelled"}, headers=headers)
    assert history.json()["total"] == 1


def test_patient_cannot_see_other_bookings(
    client, make_patient, patient_headers, general_template, booking_day
):
    owner = make_patient()
    stranger = make_patient()
    booking_id = _book(client, patient_headers(owner), general_template, booking_day).json()["booking_id"]

    assert client.get(f"/bookings/{booking_id}", headers=patient_headers(stranger)).status_code == 404
    assert client.get(f"/patients/{owner.id}/bookings", headers=patient_headers(stranger)).status_code == 404
    cancel = client.post(f"/bookings/{booking_id}/cancel", headers=patient_headers(stranger))
    assert cancel.status_code == 404
    assert cancel.headers["X-Rejection-Code"] == "BookingNotFound"


def test_staff_moves_booking_through_visit(
    client, admin_user, staff_headers, make_patient, patient_headers, general_template, booking_day
):
    booking_id = _book(client, patient_headers(make_patient()), general_template, booking_day).json()["booking_id"]
    headers = staff_headers(admin_user)

    for new_status in ("verified", "in_consultation", "completed"):
        res = client.post(f"/bookings/{booking_id}/status", json={"status": new_status}, headers=headers)
        assert res.status_code == 200, res.text
        assert res.json()["status"] == new_status

    res = client.post(f"/bookings/{booking_id}/status", json={"status": "cancelled"}, headers=headers)
    assert res.status_code == 409


def test_patient_token_cannot_change_status(client, make_patient, patient_headers, general_template, booking_day):
    patient = make_patient()
    headers = patient_headers(patient)
    booking_id = _book(client, headers, general_template, booking_day).json()["booking_id"]

    res = client.post(f"/bookings/{booking_id}/status", json={"status": "verified"}, headers=headers)
    assert res.status_code == 403


def test_daily_queue_has_estimated_times(
    client, admin_user, staff_headers, make_patient, patient_headers, general_template, booking_day
):
    for _ in range(2):
        _book(client, patient_headers(make_patient()), general_template, booking_day)

    res = client.get(
        "/bookings/queue",
        params={"date": booking_day.isoformat(), "category": "general"},
        headers=staff_headers(admin_user),
    )
    assert res.status_code == 200, res.text
    entries = res.json()
    assert [entry["booking"]["slot_number"] for entry in entries] == [1, 2]
    assert [entry["estimated_time"] for entry in entries] == ["08:00:00", "08:10:00"]


def test_queue_is_scoped_to_role(client, make_user, staff_headers, booking_day):
    opd = make_user(Role.opd_admin)
    res = client.get(
        "/bookings/queue",
        params={"date": booking_day.isoformat(), "category": "specialty"},
        headers=staff_headers(opd),
    )
    assert res.status_code == 403


def test_storage_failure_maps_to_503(
    client, make_patient, patient_headers, general_template, booking_day, monkeypatch
):
    def _unavailable(*args, **kwargs):
        raise StorageUnavailableError("The booking service is temporarily unavailable. Please try again.")

    monkeypatch.setattr(bookings_router, "allocate", _unavailable)
    res = _book(
        client,
        {**patient_headers(make_patient()), "x-request-id": "req-503"},
        general_template,
        booking_day,
    )
    assert res.status_code == 503
    assert res.headers["Retry-After"] == "2"
    assert res.json()["request_id"] == "req-503"


def test_requests_without_token_are_rejected(client, booking_day):
    res = client.post(
        "/bookings",
        json={"category": "general", "booking_date": booking_day.isoformat(), "template_id": 1},
    )
    assert res.status_code == 401
