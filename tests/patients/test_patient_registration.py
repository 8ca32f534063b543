import pytest
from sqlalchemy import select

from hospital_queue.models import Gender, PatientIdSequence
from hospital_queue.services.patients import (
    RegistrationConflictError,
    authenticate_patient,
    is_valid_nic,
    is_valid_phone,
    normalize_phone,
    register_patient,
    search_patients,
)


def _payload(**overrides):
    data = {
        "full_name": "Amara Jayasinghe",
        "age": 34,
        "gender": Gender.female,
        "address": "7 Lake View Lane, Kurunegala",
        "nic_number": "901234567v",
        "phone_number": "0771112223",
    }
    data.update(overrides)
    return data


def test_registration_issues_id_and_normalises(db):
    patient = register_patient(db, **_payload())

    assert patient.unique_patient_id.endswith("000001")
    assert patient.nic_number == "901234567V"
    assert patient.phone_number == "+94771112223"
    assert patient.created_by_user_id is None


def test_staff_registration_records_creator(db, admin_actor):
    patient = register_patient(db, actor=admin_actor, **_payload())
    assert patient.created_by_user_id == admin_actor.id


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"phone_number": "0779998887"}, "NIC"),
        ({"nic_number": "199012345678"}, "phone"),
    ],
)
def test_duplicate_identity_is_rejected(db, overrides, message):
    register_patient(db, **_payload())

    with pytest.raises(RegistrationConflictError) as excinfo:
        register_patient(db, **_payload(**overrides))

    assert message in str(excinfo.value)


def test_conflict_is_caught_before_an_id_is_issued(db):
    register_patient(db, **_payload())
    with pytest.raises(RegistrationConflictError):
        register_patient(db, **_payload())
    db.rollback()

    sequence = db.scalar(select(PatientIdSequence.last_seq))
    assert sequence == 1


@pytest.mark.parametrize(
    "nic,valid",
    [
        ("901234567V", True),
        ("901234567x", True),
        ("199012345678", True),
        ("90123456V", False),
        ("ABC", False),
    ],
)
def test_nic_format(nic, valid):
    assert is_valid_nic(nic) is valid


@pytest.mark.parametrize(
    "phone,valid",
    [("0771234567", True), ("+94771234567", True), ("771234567", False), ("07712345", False)],
)
def test_phone_format(phone, valid):
    assert is_valid_phone(phone) is valid


def test_normalize_phone_keeps_international_form():
    assert normalize_phone("+94771234567") == "+94771234567"
    assert normalize_phone(" 0771234567 ") == "+94771234567"


def test_patient_login_uses_last_four_nic_characters(db):
    patient = register_patient(db, **_payload())

    assert authenticate_patient(db, unique_patient_id=patient.unique_patient_id.lower(), nic_last4="567v")
    assert authenticate_patient(db, unique_patient_id=patient.unique_patient_id, nic_last4="0000") is None
    assert authenticate_patient(db, unique_patient_id="AMH2000999999", nic_last4="567V") is None


def test_login_stamps_last_login(db):
    patient = register_patient(db, **_payload())
    assert patient.last_login_at is None
    logged_in = authenticate_patient(db, unique_patient_id=patient.unique_patient_id, nic_last4="567V")
    assert logged_in.last_login_at is not None


def test_search_matches_name_phone_and_id(db):
    first = register_patient(db, **_payload())
    register_patient(
        db, **_payload(full_name="Ruwan Bandara", nic_number="881111111V", phone_number="0712223334")
    )

    assert [p.id for p in search_patients(db, "amara")] == [first.id]
    assert [p.id for p in search_patients(db, "77111")] == [first.id]
    assert len(search_patients(db, first.unique_patient_id[:3])) == 2
