"""Which concrete dates can be booked, and how full each slot instance is.

Everything here is a read. Dates are evaluated in the hospital's civil calendar
(a fixed UTC offset), never the caller's local time.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hospital_queue.core.settings import settings
from hospital_queue.models.blocked_date import BlockedDate
from hospital_queue.models.booking import RELEASED_STATUSES, Booking
from hospital_queue.models.clinic import Clinic
from hospital_queue.models.slot_template import BookingCategory, SlotTemplate

CLINIC_CLOSED_MESSAGE = "This clinic is not accepting bookings."


def hospital_tz() -> timezone:
    return timezone(timedelta(minutes=settings.hospital_utc_offset_minutes))


def hospital_now(now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)).astimezone(hospital_tz())


def hospital_today(now: datetime | None = None) -> date:
    return hospital_now(now).date()


def weekday_index(target: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return target.isoweekday() % 7


def slot_starts_at(booking_date: date, start_time: time) -> datetime:
    return datetime.combine(booking_date, start_time, tzinfo=hospital_tz())


def estimate_turn_time(start_time: time, slot_number: int) -> time:
    wait = timedelta(minutes=(slot_number - 1) * settings.avg_consultation_minutes)
    return (datetime.combine(date.min, start_time) + wait).time()


def _template_scope(stmt, category: BookingCategory, clinic_id: int | None):
    stmt = stmt.where(SlotTemplate.is_active.is_(True), SlotTemplate.category == category)
    if category == BookingCategory.specialty:
        return stmt.where(
            SlotTemplate.clinic_id == clinic_id,
            SlotTemplate.clinic.has(Clinic.is_active.is_(True)),
        )
    return stmt.where(SlotTemplate.clinic_id.is_(None))


def get_blocked_date(db: Session, target: date) -> BlockedDate | None:
    return db.scalar(select(BlockedDate).where(BlockedDate.blocked_date == target))


def has_active_template(
    db: Session, target: date, category: BookingCategory, clinic_id: int | None = None
) -> bool:
    stmt = _template_scope(
        select(SlotTemplate.id).where(SlotTemplate.day_of_week == weekday_index(target)),
        category,
        clinic_id,
    ).limit(1)
    return db.scalar(stmt) is not None


def check_bookable(
    db: Session,
    target: date,
    category: BookingCategory,
    clinic_id: int | None = None,
    *,
    today: date | None = None,
) -> str | None:
    """Return None when the date is bookable, otherwise the reason it is not."""
    today = today or hospital_today()
    if category == BookingCategory.specialty:
        if clinic_id is None:
            return "Please select a clinic."
        clinic = db.get(Clinic, clinic_id)
        if clinic is None or not clinic.is_active:
            return CLINIC_CLOSED_MESSAGE
    if target < today:
        return "Bookings cannot be made for past dates."
    if target > today + timedelta(days=settings.max_advance_booking_days):
        return (
            f"Bookings can only be made up to {settings.max_advance_booking_days} days in advance."
        )
    blocked = get_blocked_date(db, target)
    if blocked:
        return f"The hospital is closed on this date ({blocked.reason})."
    if not has_active_template(db, target, category, clinic_id):
        return "No sessions are scheduled on this date."
    return None


def is_bookable(
    db: Session,
    target: date,
    category: BookingCategory,
    clinic_id: int | None = None,
    *,
    today: date | None = None,
) -> bool:
    return check_bookable(db, target, category, clinic_id, today=today) is None


def bookable_dates(
    db: Session,
    category: BookingCategory,
    clinic_id: int | None = None,
    *,
    today: date | None = None,
) -> list[date]:
    today = today or hospital_today()
    if category == BookingCategory.specialty and clinic_id is None:
        return []
    horizon = today + timedelta(days=settings.max_advance_booking_days)
    active_days = set(
        db.scalars(_template_scope(select(SlotTemplate.day_of_week).distinct(), category, clinic_id))
    )
    blocked = set(
        db.scalars(
            select(BlockedDate.blocked_date).where(
                BlockedDate.blocked_date >= today, BlockedDate.blocked_date <= horizon
            )
        )
    )
    dates: list[date] = []
    current = today
    while current <= horizon:
        if weekday_index(current) in active_days and current not in blocked:
            dates.append(current)
        current += timedelta(days=1)
    return dates


@dataclass(frozen=True)
class SlotAvailability:
    template: SlotTemplate
    capacity: int
    booked_count: int
    available: int


def live_booking_count(db: Session, *, template_id: int, booking_date: date) -> int:
    stmt = select(func.count(Booking.id)).where(
        Booking.template_id == template_id,
        Booking.booking_date == booking_date,
        Booking.status.not_in(RELEASED_STATUSES),
    )
    return int(db.scalar(stmt) or 0)


def availability(
    db: Session,
    target: date,
    category: BookingCategory,
    clinic_id: int | None = None,
) -> list[SlotAvailability]:
    """Occupancy of every active template on ``target``.

    Runs without the allocation lock, so under concurrent booking the counts
    may trail the committed state by a few rows. Never cached.
    """
    counts = (
        select(Booking.template_id, func.count(Booking.id).label("booked"))
        .where(Booking.booking_date == target, Booking.status.not_in(RELEASED_STATUSES))
        .group_by(Booking.template_id)
        .subquery()
    )
    stmt = _template_scope(
        select(SlotTemplate, func.coalesce(counts.c.booked, 0))
        .outerjoin(counts, counts.c.template_id == SlotTemplate.id)
        .where(SlotTemplate.day_of_week == weekday_index(target)),
        category,
        clinic_id,
    ).order_by(SlotTemplate.start_time)
    rows: list[SlotAvailability] = []
    for template, booked in db.execute(stmt):
        booked = int(booked or 0)
        rows.append(
            SlotAvailability(
                template=template,
                capacity=template.capacity,
                booked_count=booked,
                available=max(template.capacity - booked, 0),
            )
        )
    return rows
