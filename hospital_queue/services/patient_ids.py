"""Year-scoped, human-presentable patient identifiers (e.g. AMH2026000123)."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from hospital_queue.core.settings import settings
from hospital_queue.db.locking import apply_lock_timeout, dialect_insert, storage_guard
from hospital_queue.models.patient_id_sequence import PatientIdSequence
from hospital_queue.services.calendar_policy import hospital_now

logger = logging.getLogger("hospital_queue.patient_ids")


def format_patient_id(year: int, sequence: int) -> str:
    return f"{settings.patient_id_prefix}{year}{sequence:0{settings.patient_id_seq_digits}d}"


def next_patient_id(db: Session, *, now: datetime | None = None) -> str:
    """Issue the next identifier for the current hospital-local year.

    The increment and the read of the new value are one INSERT .. ON CONFLICT
    DO UPDATE .. RETURNING statement, committed immediately, so concurrent
    callers serialise on the year row and never see the same number.
    """
    year = hospital_now(now).year
    stmt = (
        dialect_insert(db, PatientIdSequence)
        .values(year=year, last_seq=1)
        .on_conflict_do_update(
            index_elements=["year"],
            set_={"last_seq": PatientIdSequence.last_seq + 1},
        )
        .returning(PatientIdSequence.last_seq)
    )
    with storage_guard(db, operation="next_patient_id"):
        apply_lock_timeout(db)
        sequence = db.execute(stmt).scalar_one()
        db.commit()
    patient_id = format_patient_id(year, sequence)
    logger.info("Issued patient id %s", patient_id)
    return patient_id
