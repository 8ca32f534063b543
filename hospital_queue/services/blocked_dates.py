from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hospital_queue.db.locking import storage_guard
from hospital_queue.models.blocked_date import BlockedDate
from hospital_queue.models.booking import RELEASED_STATUSES, Booking
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event
from hospital_queue.services.calendar_policy import hospital_today

logger = logging.getLogger("hospital_queue.blocked_dates")


class BlockedDateConflictError(ValueError):
    pass


@dataclass(frozen=True)
class BlockResult:
    blocked: BlockedDate
    affected_bookings: int


def list_blocked_dates(db: Session, *, upcoming_only: bool = False) -> list[BlockedDate]:
    stmt = select(BlockedDate).order_by(BlockedDate.blocked_date.asc())
    if upcoming_only:
        stmt = stmt.where(BlockedDate.blocked_date >= hospital_today())
    return list(db.scalars(stmt))


def live_bookings_on(db: Session, target: date) -> int:
    stmt = select(func.count(Booking.id)).where(
        Booking.booking_date == target, Booking.status.not_in(RELEASED_STATUSES)
    )
    return int(db.scalar(stmt) or 0)


def block_date(
    db: Session,
    *,
    target: date,
    reason: str,
    actor: Actor | None = None,
    request_id: str | None = None,
) -> BlockResult:
    """Close the hospital on ``target``.

    Bookings already taken for the date are left as they are; the count is
    returned so staff can follow up with those patients.
    """
    if db.scalar(select(BlockedDate.id).where(BlockedDate.blocked_date == target)):
        raise BlockedDateConflictError("This date is already blocked.")
    blocked = BlockedDate(
        blocked_date=target,
        reason=reason.strip(),
        created_by_user_id=actor.id if actor and actor.is_staff else None,
    )
    try:
        with storage_guard(db, operation="block_date"):
            db.add(blocked)
            db.commit()
    except IntegrityError as exc:
        raise BlockedDateConflictError("This date is already blocked.") from exc

    affected = live_bookings_on(db, target)
    if affected:
        logger.warning("Blocked %s with %s live bookings", target, affected)
    record_event(
        db,
        actor=actor,
        action="blocked_date.created",
        entity_type="blocked_date",
        entity_id=str(blocked.id),
        details={"blocked_date": target, "reason": blocked.reason, "affected_bookings": affected},
        request_id=request_id,
    )
    return BlockResult(blocked=blocked, affected_bookings=affected)


def unblock_date(
    db: Session,
    *,
    blocked: BlockedDate,
    actor: Actor | None = None,
    request_id: str | None = None,
) -> None:
    blocked_id = blocked.id
    target = blocked.blocked_date
    db.delete(blocked)
    db.commit()
    record_event(
        db,
        actor=actor,
        action="blocked_date.removed",
        entity_type="blocked_date",
        entity_id=str(blocked_id),
        details={"blocked_date": target},
        request_id=request_id,
    )
