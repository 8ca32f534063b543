from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from hospital_queue.models.clinic import Clinic
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event, snapshot_model


def get_clinic(db: Session, clinic_id: int) -> Clinic | None:
    return db.scalar(select(Clinic).where(Clinic.id == clinic_id))


def list_clinics(db: Session, *, include_inactive: bool = False) -> list[Clinic]:
    stmt = select(Clinic).order_by(Clinic.clinic_name.asc())
    if not include_inactive:
        stmt = stmt.where(Clinic.is_active.is_(True))
    return list(db.scalars(stmt))


def create_clinic(
    db: Session,
    *,
    clinic_name: str,
    description: str | None = None,
    doctor_name: str | None = None,
    specialty: str | None = None,
    actor: Actor | None = None,
    request_id: str | None = None,
) -> Clinic:
    clinic = Clinic(
        clinic_name=clinic_name.strip(),
        description=description,
        doctor_name=doctor_name,
        specialty=specialty,
        is_active=True,
        created_by_user_id=actor.id if actor and actor.is_staff else None,
    )
    db.add(clinic)
    db.commit()
    record_event(
        db,
        actor=actor,
        action="clinic.created",
        entity_type="clinic",
        entity_id=str(clinic.id),
        details={"clinic_name": clinic.clinic_name},
        request_id=request_id,
    )
    return clinic


def update_clinic(
    db: Session,
    *,
    clinic: Clinic,
    changes: dict,
    actor: Actor | None = None,
    request_id: str | None = None,
) -> Clinic:
    before = snapshot_model(clinic)
    for field in ("clinic_name", "description", "doctor_name", "specialty", "is_active"):
        if field in changes:
            setattr(clinic, field, changes[field])
    db.add(clinic)
    db.commit()
    record_event(
        db,
        actor=actor,
        action="clinic.updated",
        entity_type="clinic",
        entity_id=str(clinic.id),
        details={"before": before, "after": snapshot_model(clinic)},
        request_id=request_id,
    )
    return clinic
