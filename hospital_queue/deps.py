from fastapi import Depends, Header, HTTPException, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from hospital_queue.core.security import PATIENT_TOKEN, STAFF_TOKEN, read_access_token
from hospital_queue.core.settings import settings
from hospital_queue.db.session import get_db
from hospital_queue.models.patient import Patient
from hospital_queue.models.user import User
from hospital_queue.services.actors import Actor
from hospital_queue.services.permissions import has_permission


def _decode_bearer(authorization: str | None) -> tuple[str, int]:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        return read_access_token(token, secret=settings.secret_key, alg=settings.jwt_alg)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def _load_user(db: Session, user_id: int) -> User:
    user = db.scalar(select(User).where(User.id == user_id))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user


def _load_patient(db: Session, patient_id: int) -> Patient:
    patient = db.scalar(select(Patient).where(Patient.id == patient_id))
    if not patient or not patient.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive patient")
    return patient


def get_current_user(
    db: Session = Depends(get_db), authorization: str | None = Header(default=None)
) -> User:
    kind, subject_id = _decode_bearer(authorization)
    if kind != STAFF_TOKEN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff access required")
    return _load_user(db, subject_id)


def get_current_patient(
    db: Session = Depends(get_db), authorization: str | None = Header(default=None)
) -> Patient:
    kind, subject_id = _decode_bearer(authorization)
    if kind != PATIENT_TOKEN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Patient session required")
    return _load_patient(db, subject_id)


def get_current_actor(
    db: Session = Depends(get_db), authorization: str | None = Header(default=None)
) -> Actor:
    kind, subject_id = _decode_bearer(authorization)
    if kind == PATIENT_TOKEN:
        return Actor.from_patient(_load_patient(db, subject_id))
    return Actor.from_user(_load_user(db, subject_id))


def get_optional_actor(
    db: Session = Depends(get_db), authorization: str | None = Header(default=None)
) -> Actor | None:
    if not authorization:
        return None
    return get_current_actor(db=db, authorization=authorization)


def require_permission(permission: str):
    def _inner(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user.role, permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user

    return _inner


require_admin = require_permission("users.manage")


def ensure_patient_access(actor: Actor, patient_id: int) -> None:
    """Staff may read any patient; a patient only their own record."""
    if actor.is_patient and actor.id != patient_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    if actor.is_staff and not has_permission(actor.role, "patients.view"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
