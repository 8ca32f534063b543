from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from hospital_queue.core.settings import settings
from hospital_queue.models.booking import RELEASED_STATUSES, Booking
from hospital_queue.models.prescription import Prescription
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event
from hospital_queue.services.calendar_policy import hospital_today

logger = logging.getLogger("hospital_queue.prescriptions")


class PrescriptionError(ValueError):
    pass


def get_prescription(db: Session, prescription_id: int) -> Prescription | None:
    return db.scalar(select(Prescription).where(Prescription.id == prescription_id))


def list_for_patient(db: Session, patient_id: int) -> list[Prescription]:
    stmt = (
        select(Prescription)
        .where(Prescription.patient_id == patient_id)
        .order_by(Prescription.issued_at.desc(), Prescription.id.desc())
    )
    return list(db.scalars(stmt))


def issue_prescription(
    db: Session,
    *,
    booking_id: int,
    doctor_name: str,
    doctor_reg_number: str,
    medicines: list[dict],
    actor: Actor,
    diagnosis: str | None = None,
    notes: str | None = None,
    valid_until: date | None = None,
    request_id: str | None = None,
) -> Prescription:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise PrescriptionError("Booking not found.")
    if booking.status in RELEASED_STATUSES:
        raise PrescriptionError("Prescriptions cannot be issued for a cancelled or missed visit.")
    if not medicines:
        raise PrescriptionError("At least one medicine is required.")
    prescription = Prescription(
        patient_id=booking.patient_id,
        booking_id=booking.id,
        doctor_name=doctor_name.strip(),
        doctor_reg_number=doctor_reg_number.strip(),
        diagnosis=diagnosis,
        medicines=medicines,
        notes=notes,
        valid_until=valid_until
        or hospital_today() + timedelta(days=settings.prescription_valid_days),
        pharmacy_collected=False,
        issued_by_user_id=actor.id,
    )
    db.add(prescription)
    db.commit()
    record_event(
        db,
        actor=actor,
        action="prescription.issued",
        entity_type="prescription",
        entity_id=str(prescription.id),
        details={"booking_id": booking.id, "patient_id": booking.patient_id},
        request_id=request_id,
    )
    return prescription


def mark_collected(
    db: Session,
    *,
    prescription: Prescription,
    actor: Actor,
    request_id: str | None = None,
) -> Prescription:
    if prescription.pharmacy_collected:
        raise PrescriptionError("This prescription has already been collected.")
    prescription.pharmacy_collected = True
    prescription.collected_at = datetime.now(timezone.utc)
    prescription.collected_by_user_id = actor.id
    db.add(prescription)
    db.commit()
    logger.info("Prescription %s collected", prescription.id)
    record_event(
        db,
        actor=actor,
        action="prescription.collected",
        entity_type="prescription",
        entity_id=str(prescription.id),
        request_id=request_id,
    )
    return prescription
