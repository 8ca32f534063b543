from datetime import timedelta

import pytest

from hospital_queue.models import BookingCategory
from hospital_queue.services.allocator import allocate
from hospital_queue.services.blocked_dates import (
    BlockedDateConflictError,
    block_date,
    list_blocked_dates,
    unblock_date,
)
from hospital_queue.services.calendar_policy import is_bookable


def test_block_reports_existing_bookings(db, general_template, make_patient, booking_day, admin_actor):
    allocate(
        db,
        patient_id=make_patient().id,
        category=BookingCategory.general,
        booking_date=booking_day,
        template_id=general_template.id,
    )

    result = block_date(db, target=booking_day, reason="Staff training", actor=admin_actor)

    assert result.affected_bookings == 1
    assert result.blocked.created_by_user_id == admin_actor.id


def test_block_twice_is_a_conflict(db, booking_day, admin_actor):
    block_date(db, target=booking_day, reason="Holiday", actor=admin_actor)
    with pytest.raises(BlockedDateConflictError):
        block_date(db, target=booking_day, reason="Holiday again", actor=admin_actor)


def test_unblock_restores_bookability(db, general_template, booking_day, admin_actor):
    result = block_date(db, target=booking_day, reason="Holiday", actor=admin_actor)
    assert not is_bookable(db, booking_day, BookingCategory.general)

    unblock_date(db, blocked=result.blocked, actor=admin_actor)

    assert is_bookable(db, booking_day, BookingCategory.general)


def test_upcoming_listing_skips_past_dates(db, today, admin_actor):
    block_date(db, target=today - timedelta(days=3), reason="Past closure", actor=admin_actor)
    block_date(db, target=today + timedelta(days=3), reason="Next closure", actor=admin_actor)

    assert len(list_blocked_dates(db)) == 2
    assert [b.reason for b in list_blocked_dates(db, upcoming_only=True)] == ["Next closure"]
