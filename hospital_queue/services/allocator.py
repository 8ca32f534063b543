"""Queue-number allocation for a slot instance (one template on one date).

The count-then-insert runs while holding the slot instance's counter row lock
(see ``db.locking.slot_instance_lock``), so two requests for the same instance
are strictly ordered by commit and the capacity check can never be passed by
both. Requests for other templates or dates lock other rows and proceed in
parallel.

Queue numbers come from the counter, not from the live booking count, so a
number freed by a cancellation is never handed out again.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hospital_queue.core.settings import settings
from hospital_queue.db.locking import slot_instance_lock, storage_guard
from hospital_queue.models.booking import RELEASED_STATUSES, Booking, BookingStatus
from hospital_queue.models.patient import Patient
from hospital_queue.models.slot_template import BookingCategory, SlotTemplate
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event
from hospital_queue.services.calendar_policy import (
    check_bookable,
    live_booking_count,
    weekday_index,
)
from hospital_queue.services.outcomes import Allocation, Rejection, RejectionCode, reject

logger = logging.getLogger("hospital_queue.allocator")

SLOT_FULL_MESSAGE = "This time slot is fully booked. Please choose another slot."
TEMPLATE_NOT_FOUND_MESSAGE = "The selected time slot is not available."

ALREADY_BOOKED_MESSAGES = {
    BookingCategory.general: "You already have an OPD booking on this date.",
    BookingCategory.specialty: "You already have a clinic booking on this date.",
}


def _template_matches(
    template: SlotTemplate | None, category: BookingCategory, clinic_id: int | None
) -> bool:
    if template is None or not template.is_active or template.category != category:
        return False
    if category == BookingCategory.specialty:
        if template.clinic_id is None or template.clinic_id != clinic_id:
            return False
        return template.clinic is not None and template.clinic.is_active
    return template.clinic_id is None


def _existing_booking_on(db: Session, *, patient_id: int, booking_date: date) -> Booking | None:
    return db.scalar(
        select(Booking)
        .where(
            Booking.patient_id == patient_id,
            Booking.booking_date == booking_date,
            Booking.status.not_in(RELEASED_STATUSES),
        )
        .limit(1)
    )


def _allocate_once(
    db: Session,
    *,
    patient_id: int,
    category: BookingCategory,
    clinic_id: int | None,
    booking_date: date,
    template_id: int,
    today: date | None,
) -> Allocation | Rejection:
    template = db.scalar(
        select(SlotTemplate)
        .where(SlotTemplate.id == template_id)
        .execution_options(populate_existing=True)
    )
    if not _template_matches(template, category, clinic_id):
        return reject(RejectionCode.template_not_found, TEMPLATE_NOT_FOUND_MESSAGE)

    reason = check_bookable(db, booking_date, category, template.clinic_id, today=today)
    if reason is None and template.day_of_week != weekday_index(booking_date):
        reason = "The selected session does not run on this date."
    if reason:
        return reject(RejectionCode.date_not_bookable, reason)

    with slot_instance_lock(db, template_id=template.id, booking_date=booking_date) as counter:
        db.refresh(template)
        if not template.is_active:
            return reject(RejectionCode.template_not_found, TEMPLATE_NOT_FOUND_MESSAGE)

        if live_booking_count(db, template_id=template.id, booking_date=booking_date) >= template.capacity:
            return reject(RejectionCode.slot_full, SLOT_FULL_MESSAGE)

        # Lock the patient row too: two bookings for the same patient on
        # different templates hold different slot locks.
        patient = db.scalar(
            select(Patient)
            .where(Patient.id == patient_id)
            .with_for_update(of=Patient)
            .execution_options(populate_existing=True)
        )
        if patient is None or not patient.is_active:
            return reject(RejectionCode.patient_not_found, "Patient record not found.")

        existing = _existing_booking_on(db, patient_id=patient.id, booking_date=booking_date)
        if existing is not None:
            return reject(
                RejectionCode.patient_already_booked,
                ALREADY_BOOKED_MESSAGES[existing.category],
            )

        slot_number = counter.last_slot_number + 1
        counter.last_slot_number = slot_number
        booking = Booking(
            patient_id=patient.id,
            category=category,
            clinic_id=template.clinic_id,
            booking_date=booking_date,
            template_id=template.id,
            slot_number=slot_number,
            status=BookingStatus.pending,
        )
        db.add(booking)
        db.flush()
        return Allocation(booking_id=booking.id, slot_number=slot_number)


def allocate(
    db: Session,
    *,
    patient_id: int,
    category: BookingCategory,
    booking_date: date,
    template_id: int,
    clinic_id: int | None = None,
    actor: Actor | None = None,
    today: date | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Allocation | Rejection:
    """Book the next queue number on ``template_id`` for ``booking_date``.

    Returns an ``Allocation`` or a ``Rejection``; business outcomes are never
    raised. Storage failures raise ``StorageUnavailableError`` with nothing
    persisted.
    """
    attempts = settings.allocation_retry_limit
    for attempt in range(1, attempts + 1):
        try:
            with storage_guard(db, operation="allocate"):
                outcome = _allocate_once(
                    db,
                    patient_id=patient_id,
                    category=category,
                    clinic_id=clinic_id,
                    booking_date=booking_date,
                    template_id=template_id,
                    today=today,
                )
        except IntegrityError:
            logger.warning(
                "Slot number collision on template %s for %s (attempt %s/%s)",
                template_id,
                booking_date,
                attempt,
                attempts,
            )
            continue

        if isinstance(outcome, Rejection):
            # Ends the read transaction of an early rejection; no-op after the lock.
            db.rollback()
            logger.info(
                "Allocation rejected (%s) for patient %s on template %s/%s",
                outcome.code.value,
                patient_id,
                template_id,
                booking_date,
            )
            return outcome

        record_event(
            db,
            actor=actor,
            action="booking.created",
            entity_type="booking",
            entity_id=str(outcome.booking_id),
            details={
                "patient_id": patient_id,
                "category": category,
                "clinic_id": clinic_id,
                "booking_date": booking_date,
                "template_id": template_id,
                "slot_number": outcome.slot_number,
            },
            request_id=request_id,
            ip_address=ip_address,
        )
        return outcome

    logger.error(
        "Allocation retry budget exhausted on template %s for %s", template_id, booking_date
    )
    return reject(RejectionCode.slot_full, SLOT_FULL_MESSAGE)
