"""Recurring weekly sessions that bookings are allocated against."""
from __future__ import annotations

import logging
from datetime import time

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hospital_queue.db.locking import storage_guard
from hospital_queue.models.clinic import Clinic
from hospital_queue.models.slot_template import MAX_TEMPLATE_CAPACITY, BookingCategory, SlotTemplate
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event, snapshot_model

logger = logging.getLogger("hospital_queue.templates")

DUPLICATE_TEMPLATE_MESSAGE = "A time slot already exists at this start time for this day."


class TemplateError(ValueError):
    pass


class TemplateConflictError(TemplateError):
    pass


def get_template(db: Session, template_id: int) -> SlotTemplate | None:
    return db.scalar(select(SlotTemplate).where(SlotTemplate.id == template_id))


def list_templates(
    db: Session,
    *,
    category: BookingCategory | None = None,
    clinic_id: int | None = None,
    day_of_week: int | None = None,
    include_inactive: bool = False,
) -> list[SlotTemplate]:
    stmt = select(SlotTemplate)
    if category is not None:
        stmt = stmt.where(SlotTemplate.category == category)
    if clinic_id is not None:
        stmt = stmt.where(SlotTemplate.clinic_id == clinic_id)
    if day_of_week is not None:
        stmt = stmt.where(SlotTemplate.day_of_week == day_of_week)
    if not include_inactive:
        stmt = stmt.where(SlotTemplate.is_active.is_(True))
    stmt = stmt.order_by(SlotTemplate.day_of_week.asc(), SlotTemplate.start_time.asc())
    return list(db.scalars(stmt))


def _validate_shape(
    db: Session,
    *,
    category: BookingCategory,
    clinic_id: int | None,
    day_of_week: int,
    start_time: time,
    end_time: time,
    capacity: int,
) -> None:
    if not 0 <= day_of_week <= 6:
        raise TemplateError("Day of week must be between 0 (Sunday) and 6 (Saturday).")
    if end_time <= start_time:
        raise TemplateError("End time must be after start time.")
    if not 1 <= capacity <= MAX_TEMPLATE_CAPACITY:
        raise TemplateError(f"Capacity must be between 1 and {MAX_TEMPLATE_CAPACITY}.")
    if category == BookingCategory.general and clinic_id is not None:
        raise TemplateError("OPD time slots cannot belong to a clinic.")
    if category == BookingCategory.specialty:
        clinic = db.get(Clinic, clinic_id) if clinic_id is not None else None
        if clinic is None or not clinic.is_active:
            raise TemplateError("Please select an active clinic.")


def _active_clash(
    db: Session,
    *,
    category: BookingCategory,
    clinic_id: int | None,
    day_of_week: int,
    start_time: time,
    exclude_id: int | None = None,
) -> SlotTemplate | None:
    # NULL clinic ids never collide in the partial unique index, so general
    # templates rely on this check alone.
    stmt = select(SlotTemplate).where(
        SlotTemplate.is_active.is_(True),
        SlotTemplate.category == category,
        SlotTemplate.day_of_week == day_of_week,
        SlotTemplate.start_time == start_time,
    )
    if clinic_id is None:
        stmt = stmt.where(SlotTemplate.clinic_id.is_(None))
    else:
        stmt = stmt.where(SlotTemplate.clinic_id == clinic_id)
    if exclude_id is not None:
        stmt = stmt.where(SlotTemplate.id != exclude_id)
    return db.scalar(stmt.limit(1))


def _commit(db: Session, template: SlotTemplate, *, operation: str) -> None:
    try:
        with storage_guard(db, operation=operation):
            db.add(template)
            db.commit()
    except IntegrityError as exc:
        raise TemplateConflictError(DUPLICATE_TEMPLATE_MESSAGE) from exc


def create_template(
    db: Session,
    *,
    category: BookingCategory,
    day_of_week: int,
    start_time: time,
    end_time: time,
    capacity: int,
    clinic_id: int | None = None,
    doctor_name: str | None = None,
    actor: Actor | None = None,
    request_id: str | None = None,
) -> SlotTemplate:
    _validate_shape(
        db,
        category=category,
        clinic_id=clinic_id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        capacity=capacity,
    )
    if _active_clash(
        db, category=category, clinic_id=clinic_id, day_of_week=day_of_week, start_time=start_time
    ):
        raise TemplateConflictError(DUPLICATE_TEMPLATE_MESSAGE)
    template = SlotTemplate(
        category=category,
        clinic_id=clinic_id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        capacity=capacity,
        doctor_name=doctor_name,
        is_active=True,
        created_by_user_id=actor.id if actor and actor.is_staff else None,
    )
    _commit(db, template, operation="create_template")
    logger.info("Created %s template %s", category.value, template.id)
    record_event(
        db,
        actor=actor,
        action="template.created",
        entity_type="slot_template",
        entity_id=str(template.id),
        details=snapshot_model(template),
        request_id=request_id,
    )
    return template


def update_template(
    db: Session,
    *,
    template: SlotTemplate,
    changes: dict,
    actor: Actor | None = None,
    request_id: str | None = None,
) -> SlotTemplate:
    """Apply ``changes`` (a partial field mapping) to ``template``.

    Category and clinic are fixed once created; bookings already taken keep
    their queue numbers even if capacity drops below the live count.
    """
    before = snapshot_model(template)
    for field in ("day_of_week", "start_time", "end_time", "capacity", "doctor_name", "is_active"):
        if field in changes:
            setattr(template, field, changes[field])
    try:
        _validate_shape(
            db,
            category=template.category,
            clinic_id=template.clinic_id,
            day_of_week=template.day_of_week,
            start_time=template.start_time,
            end_time=template.end_time,
            capacity=template.capacity,
        )
    except TemplateError:
        db.rollback()
        raise
    if template.is_active and _active_clash(
        db,
        category=template.category,
        clinic_id=template.clinic_id,
        day_of_week=template.day_of_week,
        start_time=template.start_time,
        exclude_id=template.id,
    ):
        db.rollback()
        raise TemplateConflictError(DUPLICATE_TEMPLATE_MESSAGE)
    _commit(db, template, operation="update_template")
    record_event(
        db,
        actor=actor,
        action="template.updated",
        entity_type="slot_template",
        entity_id=str(template.id),
        details={"before": before, "after": snapshot_model(template)},
        request_id=request_id,
    )
    return template


def deactivate_template(
    db: Session,
    *,
    template: SlotTemplate,
    actor: Actor | None = None,
    request_id: str | None = None,
) -> SlotTemplate:
    if not template.is_active:
        return template
    template.is_active = False
    _commit(db, template, operation="deactivate_template")
    logger.info("Deactivated template %s", template.id)
    record_event(
        db,
        actor=actor,
        action="template.deactivated",
        entity_type="slot_template",
        entity_id=str(template.id),
        request_id=request_id,
    )
    return template
