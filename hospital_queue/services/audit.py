from __future__ import annotations

import enum
import logging
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_queue.models.audit_log import AuditLog
from hospital_queue.services.actors import Actor, ActorKind

logger = logging.getLogger("hospital_queue.audit")


def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def snapshot_model(obj: Any | None) -> dict | None:
    if obj is None:
        return None
    data: dict[str, Any] = {}
    mapper = inspect(obj).mapper
    for column in mapper.columns:
        key = column.key
        data[key] = _json_safe(getattr(obj, key))
    return data


def log_event(
    db: Session,
    *,
    actor: Actor | None,
    action: str,
    entity_type: str,
    entity_id: str,
    details: dict | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    actor = actor or Actor.system()
    entry = AuditLog(
        actor_kind=actor.kind.value,
        actor_user_id=actor.id if actor.kind == ActorKind.staff else None,
        actor_patient_id=actor.id if actor.kind == ActorKind.patient else None,
        actor_email=actor.email,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        request_id=request_id,
        ip_address=ip_address,
        details={key: _json_safe(value) for key, value in (details or {}).items()} or None,
    )
    db.add(entry)
    return entry


def record_event(db: Session, **kwargs: Any) -> AuditLog | None:
    """Write one audit event in its own transaction, after the primary commit.

    Audit storage is best-effort: failures are logged and dropped so they can
    never undo the operation being audited.
    """
    try:
        entry = log_event(db, **kwargs)
        db.commit()
        return entry
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "Audit write failed for %s %s:%s",
            kwargs.get("action"),
            kwargs.get("entity_type"),
            kwargs.get("entity_id"),
            exc_info=True,
        )
        return None
