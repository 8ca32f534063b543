from datetime import timedelta

from hospital_queue.models import Role
from hospital_queue.services.calendar_policy import weekday_index


def _template_payload(booking_day, **overrides):
    payload = {
        "category": "general",
        "day_of_week": weekday_index(booking_day),
        "start_time": "08:00:00",
        "end_time": "12:00:00",
        "capacity": 20,
        "doctor_name": "Dr. Jayasinghe",
    }
    payload.update(overrides)
    return payload


def _book_as(client, headers, template, booking_day):
    res = client.post(
        "/bookings",
        json={
            "category": template.category.value,
            "booking_date": booking_day.isoformat(),
            "template_id": template.id,
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["booking_id"]


def test_staff_login(client, admin_user):
    res = client.post("/auth/login", json={"email": admin_user.email, "password": "StaffPassword123!"})
    assert res.status_code == 200, res.text
    token = res.json()["access_token"]

    users = client.get("/users", headers={"Authorization": f"Bearer {token}"})
    assert users.status_code == 200, users.text
    assert admin_user.email in [user["email"] for user in users.json()]

    bad = client.post("/auth/login", json={"email": admin_user.email, "password": "wrong-password"})
    assert bad.status_code == 401


def test_staff_login_is_rate_limited(client, admin_user):
    codes = [
        client.post("/auth/login", json={"email": admin_user.email, "password": "nope"}).status_code
        for _ in range(11)
    ]
    assert codes[:10] == [401] * 10
    assert codes[10] == 429

    blocked = client.post("/auth/login", json={"email": admin_user.email, "password": "StaffPassword123!"})
    assert blocked.status_code == 429
    assert 1 <= int(blocked.headers["Retry-After"]) <= 60


def test_patient_token_cannot_reach_staff_routes(client, make_patient, patient_headers):
    res = client.get("/users", headers=patient_headers(make_patient()))
    assert res.status_code == 403


def test_template_lifecycle(client, admin_user, staff_headers, booking_day):
    headers = staff_headers(admin_user)

    created = client.post("/templates", json=_template_payload(booking_day), headers=headers)
    assert created.status_code == 201, created.text
    template_id = created.json()["id"]

    duplicate = client.post("/templates", json=_template_payload(booking_day), headers=headers)
    assert duplicate.status_code == 409, duplicate.text

    patched = client.patch(f"/templates/{template_id}", json={"capacity": 25}, headers=headers)
    assert patched.status_code == 200, patched.text
    assert patched.json()["capacity"] == 25

    deactivated = client.post(f"/templates/{template_id}/deactivate", headers=headers)
    assert deactivated.json()["is_active"] is False

    listed = client.get("/templates", params={"include_inactive": "true"}, headers=headers)
    assert [item["id"] for item in listed.json()] == [template_id]


def test_template_validation(client, admin_user, staff_headers, booking_day):
    headers = staff_headers(admin_user)
    backwards = client.post(
        "/templates",
        json=_template_payload(booking_day, start_time="12:00:00", end_time="08:00:00"),
        headers=headers,
    )
    assert backwards.status_code == 422

    no_clinic = client.post(
        "/templates", json=_template_payload(booking_day, category="specialty"), headers=headers
    )
    assert no_clinic.status_code == 400, no_clinic.text


def test_opd_admin_cannot_manage_specialty_templates(
    client, make_user, staff_headers, clinic, booking_day
):
    opd = make_user(Role.opd_admin)
    res = client.post(
        "/templates",
        json=_template_payload(booking_day, category="specialty", clinic_id=clinic.id),
        headers=staff_headers(opd),
    )
    assert res.status_code == 403


def test_clinics(client, admin_user, staff_headers):
    headers = staff_headers(admin_user)
    created = client.post(
        "/clinics",
        json={"clinic_name": "Dermatology", "doctor_name": "Dr. Perera", "specialty": "Skin"},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    clinic_id = created.json()["id"]

    closed = client.patch(f"/clinics/{clinic_id}", json={"is_active": False}, headers=headers)
    assert closed.status_code == 200, closed.text

    assert clinic_id not in [item["id"] for item in client.get("/clinics").json()]
    everything = client.get("/clinics/all", headers=headers).json()
    assert clinic_id in [item["id"] for item in everything]


def test_blocking_a_date(
    client, admin_user, staff_headers, make_patient, patient_headers, general_template, booking_day
):
    _book_as(client, patient_headers(make_patient()), general_template, booking_day)
    headers = staff_headers(admin_user)

    res = client.post(
        "/blocked-dates",
        json={"blocked_date": booking_day.isoformat(), "reason": "Poya holiday"},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    assert res.json()["affected_bookings"] == 1
    blocked_id = res.json()["id"]

    check = client.get("/calendar/bookable", params={"date": booking_day.isoformat(), "category": "general"})
    assert check.json()["bookable"] is False
    assert "Poya holiday" in check.json()["reason"]

    again = client.post(
        "/blocked-dates",
        json={"blocked_date": booking_day.isoformat(), "reason": "Poya holiday"},
        headers=headers,
    )
    assert again.status_code == 409

    assert [item["id"] for item in client.get("/blocked-dates").json()] == [blocked_id]
    assert client.delete(f"/blocked-dates/{blocked_id}", headers=headers).status_code == 204
    assert client.get("/blocked-dates").json() == []


def test_prescription_issue_and_collect(
    client, admin_user, staff_headers, make_patient, patient_headers, general_template, booking_day, today
):
    patient = make_patient()
    booking_id = _book_as(client, patient_headers(patient), general_template, booking_day)
    headers = staff_headers(admin_user)

    res = client.post(
        "/prescriptions",
        json={
            "booking_id": booking_id,
            "doctor_name": "Dr. Silva",
            "doctor_reg_number": "SLMC-12345",
            "diagnosis": "Viral fever",
            "medicines": [{"name": "Paracetamol", "dosage": "500mg", "duration": "3 days"}],
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["patient_id"] == patient.id
    assert body["valid_until"] == (today + timedelta(days=3)).isoformat()
    assert body["pharmacy_collected"] is False

    collected = client.post(f"/prescriptions/{body['id']}/collect", headers=headers)
    assert collected.status_code == 200, collected.text
    assert collected.json()["pharmacy_collected"] is True
    assert client.post(f"/prescriptions/{body['id']}/collect", headers=headers).status_code == 409

    mine = client.get(f"/patients/{patient.id}/prescriptions", headers=patient_headers(patient))
    assert [item["id"] for item in mine.json()] == [body["id"]]


def test_prescription_needs_medicines(client, admin_user, staff_headers):
    res = client.post(
        "/prescriptions",
        json={
            "booking_id": 1,
            "doctor_name": "Dr. Silva",
            "doctor_reg_number": "SLMC-12345",
            "medicines": [],
        },
        headers=staff_headers(admin_user),
    )
    assert res.status_code == 422


def test_reports(client, admin_user, staff_headers, make_patient, patient_headers, general_template, booking_day):
    _book_as(client, patient_headers(make_patient()), general_template, booking_day)
    headers = staff_headers(admin_user)

    daily = client.get("/reports/daily", params={"date": booking_day.isoformat()}, headers=headers)
    assert daily.status_code == 200, daily.text
    counts = daily.json()["counts"]
    assert counts["general"]["pending"] == 1
    assert counts["general"]["total"] == 1
    assert counts["specialty"]["total"] == 0

    monthly = client.get("/reports/registrations", params={"months": 3}, headers=headers)
    assert monthly.status_code == 200, monthly.text
    rows = monthly.json()
    assert len(rows) == 3
    assert rows[-1]["registrations"] >= 1


def test_user_management(client, admin_user, staff_headers):
    headers = staff_headers(admin_user)
    created = client.post(
        "/users",
        json={
            "email": "opd.desk@example.com",
            "full_name": "OPD Desk",
            "role": "opd_admin",
            "temp_password": "TemporaryPass123!",
        },
        headers=headers,
    )
    assert created.status_code == 201, created.text
    assert created.json()["must_change_password"] is True
    user_id = created.json()["id"]

    duplicate = client.post(
        "/users",
        json={
            "email": "OPD.Desk@example.com",
            "role": "opd_admin",
            "temp_password": "TemporaryPass123!",
        },
        headers=headers,
    )
    assert duplicate.status_code == 409

    promoted = client.patch(f"/users/{user_id}", json={"role": "clinic_admin"}, headers=headers)
    assert promoted.json()["role"] == "clinic_admin"

    self_disable = client.patch(f"/users/{admin_user.id}", json={"is_active": False}, headers=headers)
    assert self_disable.status_code == 400

    last_admin = client.patch(f"/users/{admin_user.id}", json={"role": "opd_admin"}, headers=headers)
    assert last_admin.status_code == 400
    assert "super admin" in last_admin.json()["detail"]

    audit = client.get("/audit", params={"entity_type": "user", "entity_id": str(user_id)}, headers=headers)
    assert {entry["action"] for entry in audit.json()} == {"user.created", "user.updated"}


def test_non_admin_cannot_manage_users(client, make_user, staff_headers):
    opd = make_user(Role.opd_admin)
    assert client.get("/users", headers=staff_headers(opd)).status_code == 403


def test_audit_trail(
    client, admin_user, staff_headers, make_patient, patient_headers, general_template, booking_day
):
    patient = make_patient()
    booking_id = _book_as(client, patient_headers(patient), general_template, booking_day)
    headers = staff_headers(admin_user)
    client.post(f"/bookings/{booking_id}/status", json={"status": "verified"}, headers=headers)

    res = client.get(
        "/audit", params={"entity_type": "booking", "entity_id": str(booking_id)}, headers=headers
    )
    assert res.status_code == 200, res.text
    actions = [entry["action"] for entry in res.json()]
    assert "booking.created" in actions
    assert "booking.verified" in actions
    by_action = {entry["action"]: entry for entry in res.json()}
    assert by_action["booking.created"]["actor_kind"] == "patient"
    assert by_action["booking.created"]["actor_patient_id"] == patient.id
    assert by_action["booking.verified"]["actor_kind"] == "staff"
    assert by_action["booking.verified"]["actor_user_id"] == admin_user.id


def test_issue_patient_id(client, admin_user, make_user, staff_headers):
    res = client.post("/patient-ids/next", headers=staff_headers(admin_user))
    assert res.status_code == 200, res.text
    assert res.json()["unique_patient_id"].startswith("AMH")

    opd = make_user(Role.opd_admin)
    assert client.post("/patient-ids/next", headers=staff_headers(opd)).status_code == 403
