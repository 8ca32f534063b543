from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hospital_queue.db.locking import storage_guard
from hospital_queue.models.patient import Gender, Patient
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event
from hospital_queue.services.patient_ids import next_patient_id

logger = logging.getLogger("hospital_queue.patients")

NIC_PATTERN = re.compile(r"^(?:[0-9]{9}[VX]|[0-9]{12})$")
PHONE_PATTERN = re.compile(r"^(?:\+94|0)[0-9]{9}$")
NAME_PATTERN = re.compile(r"^[A-Za-z\s]{3,100}$")
MINOR_AGE = 18


class RegistrationConflictError(ValueError):
    pass


def normalize_nic(nic: str) -> str:
    return nic.strip().upper() if nic else ""


def normalize_phone(phone: str) -> str:
    if not phone:
        return ""
    cleaned = phone.strip()
    if cleaned.startswith("0"):
        return "+94" + cleaned[1:]
    return cleaned


def is_valid_nic(nic: str) -> bool:
    return bool(NIC_PATTERN.match(normalize_nic(nic)))


def is_valid_phone(phone: str) -> bool:
    return bool(phone and PHONE_PATTERN.match(phone.strip()))


def is_valid_name(name: str) -> bool:
    return bool(name and NAME_PATTERN.match(name.strip()))


def find_registration_conflict(db: Session, *, nic_number: str, phone_number: str) -> str | None:
    nic = normalize_nic(nic_number)
    phone = normalize_phone(phone_number)
    if db.scalar(select(Patient.id).where(Patient.nic_number == nic)):
        return "A patient with this NIC number is already registered."
    if db.scalar(select(Patient.id).where(Patient.phone_number == phone)):
        return "A patient with this phone number is already registered."
    return None


def register_patient(
    db: Session,
    *,
    full_name: str,
    age: int,
    gender: Gender,
    address: str,
    nic_number: str,
    phone_number: str,
    guardian_name: str | None = None,
    guardian_phone: str | None = None,
    actor: Actor | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Patient:
    """Issue an identifier, then persist the patient.

    The two steps commit separately: if the insert fails after the id was
    issued, that sequence number stays consumed.
    """
    conflict = find_registration_conflict(db, nic_number=nic_number, phone_number=phone_number)
    if conflict:
        raise RegistrationConflictError(conflict)

    unique_patient_id = next_patient_id(db)
    patient = Patient(
        unique_patient_id=unique_patient_id,
        full_name=full_name.strip(),
        age=age,
        gender=gender,
        address=address.strip(),
        nic_number=normalize_nic(nic_number),
        phone_number=normalize_phone(phone_number),
        guardian_name=guardian_name.strip() if guardian_name and guardian_name.strip() else None,
        guardian_phone=normalize_phone(guardian_phone) if guardian_phone else None,
        created_by_user_id=actor.id if actor and actor.is_staff else None,
    )
    try:
        with storage_guard(db, operation="register_patient"):
            db.add(patient)
            db.commit()
    except IntegrityError as exc:
        logger.warning("Patient insert failed after issuing %s", unique_patient_id)
        conflict = find_registration_conflict(db, nic_number=nic_number, phone_number=phone_number)
        raise RegistrationConflictError(
            conflict or "This patient could not be registered. Please check the details."
        ) from exc

    record_event(
        db,
        actor=actor,
        action="patient.created",
        entity_type="patient",
        entity_id=str(patient.id),
        details={
            "unique_patient_id": patient.unique_patient_id,
            "self_registered": patient.created_by_user_id is None,
        },
        request_id=request_id,
        ip_address=ip_address,
    )
    return patient


def authenticate_patient(db: Session, *, unique_patient_id: str, nic_last4: str) -> Patient | None:
    patient = db.scalar(
        select(Patient).where(
            Patient.unique_patient_id == unique_patient_id.strip().upper(),
            Patient.is_active.is_(True),
        )
    )
    if not patient:
        return None
    if patient.nic_number[-4:].upper() != nic_last4.strip().upper():
        return None
    patient.last_login_at = datetime.now(timezone.utc)
    db.add(patient)
    db.commit()
    return patient


def search_patients(db: Session, term: str, *, limit: int = 20) -> list[Patient]:
    like = f"%{term.strip()}%"
    stmt = (
        select(Patient)
        .where(Patient.is_active.is_(True))
        .where(
            or_(
                Patient.unique_patient_id.ilike(like),
                Patient.full_name.ilike(like),
                Patient.nic_number.ilike(like),
                Patient.phone_number.ilike(like),
            )
        )
        .order_by(Patient.full_name.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt))
