"""Visit lifecycle of a booking.

    pending -> verified -> in_consultation -> completed
    pending | verified -> cancelled
    pending | verified -> no_show

completed, cancelled and no_show are final. Staff drive every transition;
a patient may only cancel their own pending booking, and only while more than
the cancellation window remains before the session starts.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from hospital_queue.core.settings import settings
from hospital_queue.db.locking import storage_guard
from hospital_queue.models.booking import Booking, BookingStatus
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event
from hospital_queue.services.calendar_policy import hospital_now, slot_starts_at
from hospital_queue.services.outcomes import Rejection, RejectionCode, reject
from hospital_queue.services.permissions import can_manage_bookings

logger = logging.getLogger("hospital_queue.booking_status")

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.pending: frozenset(
        {BookingStatus.verified, BookingStatus.cancelled, BookingStatus.no_show}
    ),
    BookingStatus.verified: frozenset(
        {BookingStatus.in_consultation, BookingStatus.cancelled, BookingStatus.no_show}
    ),
    BookingStatus.in_consultation: frozenset({BookingStatus.completed}),
    BookingStatus.completed: frozenset(),
    BookingStatus.cancelled: frozenset(),
    BookingStatus.no_show: frozenset(),
}

PATIENT_TRANSITIONS = frozenset({(BookingStatus.pending, BookingStatus.cancelled)})


def can_patient_cancel(booking_date: date, start_time: time, *, now: datetime | None = None) -> bool:
    cutoff = slot_starts_at(booking_date, start_time) - timedelta(
        hours=settings.cancellation_window_hours
    )
    return hospital_now(now) < cutoff


def validate_transition(
    current: BookingStatus, new_status: BookingStatus, actor: Actor
) -> Rejection | None:
    if new_status not in ALLOWED_TRANSITIONS[current]:
        return reject(
            RejectionCode.invalid_status_transition,
            f"A {current.value.replace('_', ' ')} booking cannot be marked as "
            f"{new_status.value.replace('_', ' ')}.",
        )
    if actor.is_patient and (current, new_status) not in PATIENT_TRANSITIONS:
        if new_status == BookingStatus.cancelled:
            return reject(
                RejectionCode.invalid_status_transition,
                "Only pending bookings can be cancelled online. Please contact the hospital.",
            )
        return reject(
            RejectionCode.action_not_permitted,
            "Only hospital staff can update this booking.",
        )
    return None


def _authorize(booking: Booking, actor: Actor) -> Rejection | None:
    if actor.is_patient:
        if booking.patient_id != actor.id:
            return reject(RejectionCode.booking_not_found, "Booking not found.")
        return None
    if actor.is_staff and can_manage_bookings(actor.role, booking.category):
        return None
    return reject(
        RejectionCode.action_not_permitted,
        "You do not have permission to manage this booking.",
    )


def _load_locked(db: Session, booking_id: int) -> Booking | None:
    return db.scalar(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update(of=Booking)
        .execution_options(populate_existing=True)
    )


def _apply(
    db: Session,
    *,
    booking_id: int,
    actor: Actor,
    new_status: BookingStatus,
    reason: str | None,
    now: datetime | None,
) -> tuple[Booking | None, BookingStatus | None, Rejection | None]:
    booking = _load_locked(db, booking_id)
    if booking is None:
        return None, None, reject(RejectionCode.booking_not_found, "Booking not found.")
    rejection = _authorize(booking, actor) or validate_transition(booking.status, new_status, actor)
    if rejection:
        return booking, None, rejection
    if (
        actor.is_patient
        and new_status == BookingStatus.cancelled
        and not can_patient_cancel(booking.booking_date, booking.template.start_time, now=now)
    ):
        return booking, None, reject(
            RejectionCode.cancellation_window_expired,
            f"Bookings can only be cancelled more than "
            f"{settings.cancellation_window_hours} hours before the session starts.",
        )

    previous = booking.status
    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    booking.status = new_status
    booking.status_changed_at = stamp
    if new_status == BookingStatus.verified:
        booking.verified_by_user_id = actor.id
        booking.verified_at = stamp
    if new_status == BookingStatus.cancelled:
        booking.cancelled_at = stamp
        booking.cancelled_by_user_id = actor.id if actor.is_staff else None
        booking.cancellation_reason = reason or (
            "Cancelled by patient" if actor.is_patient else "Cancelled by hospital"
        )
    db.add(booking)
    db.commit()
    return booking, previous, None


def transition(
    db: Session,
    *,
    booking_id: int,
    actor: Actor,
    new_status: BookingStatus,
    reason: str | None = None,
    now: datetime | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Booking | Rejection:
    with storage_guard(db, operation="booking_transition"):
        booking, previous, rejection = _apply(
            db,
            booking_id=booking_id,
            actor=actor,
            new_status=new_status,
            reason=reason,
            now=now,
        )
        if rejection:
            db.rollback()
    if rejection:
        logger.info(
            "Transition of booking %s to %s rejected (%s)",
            booking_id,
            new_status.value,
            rejection.code.value,
        )
        return rejection

    details = {"from": previous, "to": new_status}
    if new_status == BookingStatus.cancelled:
        details["reason"] = booking.cancellation_reason
    record_event(
        db,
        actor=actor,
        action=f"booking.{new_status.value}",
        entity_type="booking",
        entity_id=str(booking.id),
        details=details,
        request_id=request_id,
        ip_address=ip_address,
    )
    return booking


def cancel(
    db: Session,
    *,
    booking_id: int,
    actor: Actor,
    reason: str | None = None,
    now: datetime | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Booking | Rejection:
    return transition(
        db,
        booking_id=booking_id,
        actor=actor,
        new_status=BookingStatus.cancelled,
        reason=reason,
        now=now,
        request_id=request_id,
        ip_address=ip_address,
    )
