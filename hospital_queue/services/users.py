"""Staff accounts: lookup, login bookkeeping and super-admin management."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hospital_queue.core.security import hash_password
from hospital_queue.models.user import Role, User
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event

logger = logging.getLogger("hospital_queue.users")

EDITABLE_FIELDS = ("full_name", "role", "is_active", "password")


class StaffAccountError(ValueError):
    pass


class StaffAccountConflictError(StaffAccountError):
    pass


def _normalize_email(email: str) -> str:
    return email.lower().strip()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == _normalize_email(email)))


def get_user_by_id(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def list_users(db: Session) -> list[User]:
    return list(db.scalars(select(User).order_by(User.id)))


def user_count(db: Session) -> int:
    return int(db.scalar(select(func.count(User.id))) or 0)


def active_super_admins(db: Session) -> int:
    stmt = select(func.count(User.id)).where(
        User.role == Role.super_admin, User.is_active.is_(True)
    )
    return int(db.scalar(stmt) or 0)


def mark_login(db: Session, user: User) -> User:
    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    return user


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str = "",
    role: Role = Role.opd_admin,
    is_active: bool = True,
    must_change_password: bool = False,
) -> User:
    user = User(
        email=_normalize_email(email),
        full_name=full_name,
        role=role,
        is_active=is_active,
        must_change_password=must_change_password,
        hashed_password=hash_password(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def seed_initial_admin(db: Session, *, email: str, password: str) -> bool:
    """Create the first super admin on an empty users table."""
    if user_count(db) > 0:
        return False
    create_user(
        db,
        email=email,
        password=password,
        full_name="Administrator",
        role=Role.super_admin,
        must_change_password=True,
    )
    return True


def register_staff(
    db: Session,
    *,
    email: str,
    temp_password: str,
    role: Role,
    actor: Actor,
    full_name: str = "",
    request_id: str | None = None,
) -> User:
    if get_user_by_email(db, email):
        raise StaffAccountConflictError("A staff account with this email already exists.")
    user = create_user(
        db,
        email=email,
        password=temp_password,
        full_name=full_name,
        role=role,
        must_change_password=True,
    )
    logger.info("Staff account %s created with role %s", user.id, role.value)
    record_event(
        db,
        actor=actor,
        action="user.created",
        entity_type="user",
        entity_id=str(user.id),
        details={"email": user.email, "role": role},
        request_id=request_id,
    )
    return user


def _check_admin_guards(db: Session, *, user: User, changes: dict[str, Any], actor: Actor) -> None:
    disabling = changes.get("is_active") is False
    demoting = changes.get("role") not in (None, Role.super_admin)
    if disabling and actor.id == user.id:
        raise StaffAccountError("You cannot deactivate your own account.")
    if user.role == Role.super_admin and user.is_active and (disabling or demoting):
        if active_super_admins(db) <= 1:
            raise StaffAccountError("At least one active super admin must remain.")


def update_user(
    db: Session,
    *,
    user: User,
    changes: dict[str, Any],
    actor: Actor,
    request_id: str | None = None,
) -> User:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise StaffAccountError(f"Cannot change: {', '.join(sorted(unknown))}")
    _check_admin_guards(db, user=user, changes=changes, actor=actor)

    before = {"role": user.role.value, "is_active": user.is_active}
    if changes.get("full_name") is not None:
        user.full_name = changes["full_name"]
    if changes.get("role") is not None:
        user.role = Role(changes["role"])
    if changes.get("is_active") is not None:
        user.is_active = changes["is_active"]
    if changes.get("password"):
        user.hashed_password = hash_password(changes["password"])
        user.must_change_password = False
    db.add(user)
    db.commit()
    db.refresh(user)

    after = {"role": user.role.value, "is_active": user.is_active}
    if after != before:
        record_event(
            db,
            actor=actor,
            action="user.updated",
            entity_type="user",
            entity_id=str(user.id),
            details={"before": before, "after": after},
            request_id=request_id,
        )
    return user
