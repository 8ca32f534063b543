"""Read side of the booking ledger: history, upcoming visits and the daily queue."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hospital_queue.models.booking import TERMINAL_STATUSES, Booking, BookingStatus
from hospital_queue.models.slot_template import BookingCategory, SlotTemplate
from hospital_queue.services.calendar_policy import estimate_turn_time, hospital_today


@dataclass(frozen=True)
class QueueEntry:
    booking: Booking
    estimated_time: time


def get_booking(db: Session, booking_id: int) -> Booking | None:
    return db.scalar(select(Booking).where(Booking.id == booking_id))


def patient_bookings(
    db: Session,
    patient_id: int,
    *,
    category: BookingCategory | None = None,
    status: BookingStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Booking], int]:
    filters = [Booking.patient_id == patient_id]
    if category is not None:
        filters.append(Booking.category == category)
    if status is not None:
        filters.append(Booking.status == status)
    total = int(db.scalar(select(func.count(Booking.id)).where(*filters)) or 0)
    stmt = (
        select(Booking)
        .where(*filters)
        .order_by(Booking.booking_date.desc(), Booking.booked_at.desc(), Booking.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(db.scalars(stmt)), total


def upcoming_bookings(db: Session, patient_id: int, *, today: date | None = None) -> list[Booking]:
    today = today or hospital_today()
    stmt = (
        select(Booking)
        .join(SlotTemplate, Booking.template_id == SlotTemplate.id)
        .where(
            Booking.patient_id == patient_id,
            Booking.booking_date >= today,
            Booking.status.not_in(TERMINAL_STATUSES),
        )
        .order_by(Booking.booking_date.asc(), SlotTemplate.start_time.asc())
    )
    return list(db.scalars(stmt))


def daily_queue(
    db: Session,
    target: date,
    *,
    category: BookingCategory | None = None,
    clinic_id: int | None = None,
    template_id: int | None = None,
    status: BookingStatus | None = None,
) -> list[QueueEntry]:
    stmt = (
        select(Booking)
        .join(SlotTemplate, Booking.template_id == SlotTemplate.id)
        .where(Booking.booking_date == target)
    )
    if category is not None:
        stmt = stmt.where(Booking.category == category)
    if clinic_id is not None:
        stmt = stmt.where(Booking.clinic_id == clinic_id)
    if template_id is not None:
        stmt = stmt.where(Booking.template_id == template_id)
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    stmt = stmt.order_by(SlotTemplate.start_time.asc(), Booking.slot_number.asc())
    return [
        QueueEntry(
            booking=booking,
            estimated_time=estimate_turn_time(booking.template.start_time, booking.slot_number),
        )
        for booking in db.scalars(stmt)
    ]
