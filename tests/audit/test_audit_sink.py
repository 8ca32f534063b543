import logging

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from hospital_queue.models import AuditLog, Booking, BookingCategory, BookingStatus
from hospital_queue.services import audit
from hospital_queue.services.allocator import allocate
from hospital_queue.services.booking_status import transition
from hospital_queue.services.outcomes import Allocation


def _allocate(db, patient, template, booking_day, **kwargs):
    return allocate(
        db,
        patient_id=patient.id,
        category=BookingCategory.general,
        booking_date=booking_day,
        template_id=template.id,
        **kwargs,
    )


@pytest.fixture
def broken_audit_sink(monkeypatch):
    def _broken_sink(*args, **kwargs):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("audit store offline"))

    def _install():
        monkeypatch.setattr(audit, "log_event", _broken_sink)

    return _install


def test_allocation_writes_one_event(db, make_patient, general_template, booking_day, admin_actor):
    patient = make_patient()
    outcome = _allocate(db, patient, general_template, booking_day, actor=admin_actor, request_id="req-1")

    events = db.scalars(
        select(AuditLog).where(
            AuditLog.action == "booking.created", AuditLog.entity_id == str(outcome.booking_id)
        )
    ).all()
    assert len(events) == 1
    event = events[0]
    assert event.actor_kind == "staff"
    assert event.actor_user_id == admin_actor.id
    assert event.entity_type == "booking"
    assert event.request_id == "req-1"
    assert event.details["slot_number"] == 1
    assert event.details["category"] == "general"
    assert event.details["booking_date"] == booking_day.isoformat()


def test_rejections_are_not_audited(db, make_patient, make_template, booking_day):
    template = make_template(capacity=1)
    _allocate(db, make_patient(), template, booking_day)
    _allocate(db, make_patient(), template, booking_day)

    actions = db.scalars(select(AuditLog.action).where(AuditLog.entity_type == "booking")).all()
    assert actions == ["booking.created"]


def test_audit_failure_does_not_undo_allocation(
    db, session_factory, make_patient, general_template, booking_day, broken_audit_sink, caplog
):
    patient = make_patient()
    broken_audit_sink()

    with caplog.at_level(logging.WARNING, logger="hospital_queue.audit"):
        outcome = _allocate(db, patient, general_template, booking_day)

    assert isinstance(outcome, Allocation)
    assert "Audit write failed" in caplog.text

    fresh = session_factory()
    try:
        booking = fresh.get(Booking, outcome.booking_id)
        assert booking is not None
        assert booking.slot_number == 1
    finally:
        fresh.close()


def test_audit_failure_does_not_undo_transition(
    db, make_patient, general_template, booking_day, admin_actor, broken_audit_sink
):
    outcome = _allocate(db, make_patient(), general_template, booking_day)
    broken_audit_sink()

    result = transition(
        db, booking_id=outcome.booking_id, actor=admin_actor, new_status=BookingStatus.verified
    )

    assert result.status == BookingStatus.verified
    db.expire_all()
    assert db.get(Booking, outcome.booking_id).status == BookingStatus.verified


def test_system_actor_when_none_given(db, make_patient):
    patient = make_patient()
    event = db.scalar(
        select(AuditLog).where(
            AuditLog.action == "patient.created", AuditLog.entity_id == str(patient.id)
        )
    )
    assert event.actor_kind == "system"
    assert event.actor_user_id is None
    assert event.details["unique_patient_id"] == patient.unique_patient_id
