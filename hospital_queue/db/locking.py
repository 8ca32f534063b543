"""Transaction and row-lock helpers shared by the allocator and the id issuer.

Both critical sections follow the same shape: take one short exclusive lock on a
single counter row, do the read-then-write, and commit or roll back before the
lock leaves this module. Callers never see a half-open transaction.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterator

from sqlalchemy import select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from hospital_queue.core.settings import settings
from hospital_queue.models.slot_counter import SlotCounter

logger = logging.getLogger("hospital_queue.locking")


class StorageUnavailableError(RuntimeError):
    """Storage could not complete an atomic section (unreachable, lock timeout).

    Nothing was persisted; the whole operation can be retried from scratch.
    """


def dialect_insert(db: Session, table):
    """Return an INSERT construct that supports ON CONFLICT for the bound dialect."""
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise StorageUnavailableError(f"Unsupported database dialect: {name}")


def apply_lock_timeout(db: Session) -> None:
    if db.get_bind().dialect.name == "postgresql":
        timeout_ms = int(settings.lock_timeout_ms)
        db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


@contextmanager
def storage_guard(db: Session, *, operation: str) -> Iterator[None]:
    """Roll back and re-raise infrastructure errors as StorageUnavailableError."""
    try:
        yield
    except DBAPIError as exc:
        db.rollback()
        if isinstance(exc, IntegrityError):
            raise
        logger.exception("Storage failure during %s", operation)
        raise StorageUnavailableError(
            "The booking service is temporarily unavailable. Please try again."
        ) from exc


@contextmanager
def slot_instance_lock(db: Session, *, template_id: int, booking_date: date) -> Iterator[SlotCounter]:
    """Hold the exclusive lock for one (template, date) slot instance.

    Yields the locked counter row. A normal exit commits whatever the caller
    added, any exception rolls everything back; the lock is released on both
    paths. Different templates or dates lock different rows and never wait on
    each other.
    """
    try:
        apply_lock_timeout(db)
        db.execute(
            dialect_insert(db, SlotCounter)
            .values(template_id=template_id, booking_date=booking_date, last_slot_number=0)
            .on_conflict_do_nothing(index_elements=["template_id", "booking_date"])
        )
        counter = db.scalar(
            select(SlotCounter)
            .where(
                SlotCounter.template_id == template_id,
                SlotCounter.booking_date == booking_date,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        yield counter
        db.commit()
    except BaseException:
        db.rollback()
        raise
