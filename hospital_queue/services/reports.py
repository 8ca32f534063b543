from __future__ import annotations

from datetime import date, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hospital_queue.models.booking import Booking, BookingStatus
from hospital_queue.models.patient import Patient
from hospital_queue.models.slot_template import BookingCategory
from hospital_queue.services.calendar_policy import hospital_today, hospital_tz


def daily_status_counts(db: Session, target: date) -> dict[str, dict[str, int]]:
    """Booking counts per category and status for one date; every status is present."""
    counts = {
        category.value: {status.value: 0 for status in BookingStatus} for category in BookingCategory
    }
    stmt = (
        select(Booking.category, Booking.status, func.count(Booking.id))
        .where(Booking.booking_date == target)
        .group_by(Booking.category, Booking.status)
    )
    for category, status, total in db.execute(stmt):
        counts[BookingCategory(category).value][BookingStatus(status).value] = int(total)
    for per_status in counts.values():
        per_status["total"] = sum(per_status.values())
    return counts


def _month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def monthly_registrations(db: Session, *, months: int = 12, today: date | None = None) -> list[dict]:
    """Patient registrations per hospital-local month, oldest first, zero-filled."""
    today = today or hospital_today()
    first_year, first_month = _shift_month(today.year, today.month, -(months - 1))
    buckets: dict[str, int] = {}
    for step in range(months):
        year, month = _shift_month(first_year, first_month, step)
        buckets[f"{year:04d}-{month:02d}"] = 0

    since = _month_start(first_year, first_month)
    tz = hospital_tz()
    for created_at in db.scalars(select(Patient.created_at)):
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        local = created_at.astimezone(tz)
        if local.date() < since:
            continue
        key = f"{local.year:04d}-{local.month:02d}"
        if key in buckets:
            buckets[key] += 1
    return [{"month": key, "registrations": total} for key, total in buckets.items()]
