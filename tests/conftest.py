import itertools
import os
from datetime import date, time, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

import pytest
from fastapi.testclient import TestClient

from hospital_queue.core.security import PATIENT_TOKEN, STAFF_TOKEN, create_access_token
from hospital_queue.core.settings import settings
from hospital_queue.db.session import build_engine, build_sessionmaker, get_db
from hospital_queue.models import Base, BookingCategory, Gender, Role
from hospital_queue.services.actors import Actor
from hospital_queue.services.calendar_policy import hospital_today, weekday_index
from hospital_queue.services.clinics import create_clinic
from hospital_queue.services.patients import register_patient
from hospital_queue.services.templates import create_template
from hospital_queue.services.users import create_user

_serial = itertools.count(1)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'hospital_queue.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def today() -> date:
    return hospital_today()


@pytest.fixture
def booking_day(today) -> date:
    return today + timedelta(days=7)


@pytest.fixture
def make_user(db):
    def _make(role: Role = Role.super_admin):
        serial = next(_serial)
        user = create_user(
            db,
            email=f"staff{serial}@example.com",
            password="StaffPassword123!",
            full_name=f"Staff {serial}",
            role=role,
        )
        # create_user refreshes the row; end that read so other sessions can write.
        db.commit()
        return user

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user(Role.super_admin)


@pytest.fixture
def admin_actor(admin_user):
    return Actor.from_user(admin_user)


@pytest.fixture
def make_patient(db):
    def _make(age: int = 30, **overrides):
        serial = next(_serial)
        data = {
            "full_name": "Nimal Perera",
            "age": age,
            "gender": Gender.male,
            "address": "12 Temple Road, Kandy",
            "nic_number": f"{900000000 + serial}V",
            "phone_number": f"07{serial:08d}",
        }
        if age < 18:
            data["guardian_name"] = "Kamala Perera"
            data["guardian_phone"] = "0771234567"
        data.update(overrides)
        return register_patient(db, **data)

    return _make


@pytest.fixture
def clinic(db, admin_actor):
    return create_clinic(
        db,
        clinic_name="Cardiology",
        doctor_name="Dr. Silva",
        specialty="Cardiology",
        actor=admin_actor,
    )


@pytest.fixture
def make_template(db, admin_actor, booking_day):
    def _make(
        category: BookingCategory = BookingCategory.general,
        *,
        capacity: int = 3,
        start: time = time(8, 0),
        end: time = time(12, 0),
        clinic_id: int | None = None,
        day_of_week: int | None = None,
    ):
        return create_template(
            db,
            category=category,
            clinic_id=clinic_id,
            day_of_week=weekday_index(booking_day) if day_of_week is None else day_of_week,
            start_time=start,
            end_time=end,
            capacity=capacity,
            actor=admin_actor,
        )

    return _make


@pytest.fixture
def general_template(make_template):
    return make_template(BookingCategory.general)


@pytest.fixture
def specialty_template(make_template, clinic):
    return make_template(BookingCategory.specialty, clinic_id=clinic.id, start=time(14, 0), end=time(16, 0))


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def staff_headers():
    def _headers(user) -> dict:
        token = create_access_token(
            subject=user.id,
            kind=STAFF_TOKEN,
            secret=settings.secret_key,
            alg=settings.jwt_alg,
            expires_minutes=30,
            claims={"role": user.role.value, "email": user.email},
        )
        return bearer(token)

    return _headers


@pytest.fixture
def patient_headers():
    def _headers(patient) -> dict:
        token = create_access_token(
            subject=patient.id,
            kind=PATIENT_TOKEN,
            secret=settings.secret_key,
            alg=settings.jwt_alg,
            expires_minutes=15,
            claims={"pid": patient.unique_patient_id},
        )
        return bearer(token)

    return _headers


@pytest.fixture
def client(session_factory):
    from hospital_queue.main import app
    from hospital_queue.routers import auth

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    for limiter in (auth.LOGIN_LIMITER, auth.LOGIN_IP_LIMITER, auth.PATIENT_LOGIN_LIMITER):
        limiter.reset()
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
