from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from hospital_queue.core.security import PATIENT_TOKEN, STAFF_TOKEN, create_access_token, verify_password
from hospital_queue.core.settings import settings
from hospital_queue.db.session import get_db
from hospital_queue.routers.errors import client_ip
from hospital_queue.schemas.auth import LoginRequest, PatientLoginRequest, PatientToken, Token
from hospital_queue.services.actors import Actor
from hospital_queue.services.audit import record_event
from hospital_queue.services.patients import authenticate_patient
from hospital_queue.services.rate_limit import SimpleRateLimiter
from hospital_queue.services.users import get_user_by_email, mark_login

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_LIMITER = SimpleRateLimiter(max_events=10, window_seconds=60)
LOGIN_IP_LIMITER = SimpleRateLimiter(max_events=20, window_seconds=60)
PATIENT_LOGIN_LIMITER = SimpleRateLimiter(max_events=5, window_seconds=60)


def _throttle(limiter: SimpleRateLimiter, rate_key: str, ip_address: str) -> None:
    if limiter.allow(rate_key) and LOGIN_IP_LIMITER.allow(ip_address):
        return
    wait = max(limiter.retry_after(rate_key), LOGIN_IP_LIMITER.retry_after(ip_address), 1)
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many login attempts",
        headers={"Retry-After": str(wait)},
    )


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    ip_address = client_ip(request) or "unknown"
    _throttle(LOGIN_LIMITER, f"{ip_address}:{payload.email.lower().strip()}", ip_address)

    user = get_user_by_email(db, payload.email)
    if user and not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    mark_login(db, user)
    token = create_access_token(
        subject=user.id,
        kind=STAFF_TOKEN,
        secret=settings.secret_key,
        alg=settings.jwt_alg,
        expires_minutes=settings.access_token_expire_minutes,
        claims={"role": user.role.value, "email": user.email},
    )
    record_event(
        db,
        actor=Actor.from_user(user),
        action="auth.login",
        entity_type="user",
        entity_id=str(user.id),
        ip_address=ip_address,
    )
    return Token(access_token=token, must_change_password=user.must_change_password)


@router.post("/patient-login", response_model=PatientToken)
def patient_login(payload: PatientLoginRequest, request: Request, db: Session = Depends(get_db)):
    ip_address = client_ip(request) or "unknown"
    _throttle(PATIENT_LOGIN_LIMITER, f"{ip_address}:{payload.unique_patient_id.strip().upper()}", ip_address)

    patient = authenticate_patient(
        db, unique_patient_id=payload.unique_patient_id, nic_last4=payload.nic_last4
    )
    if not patient:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Patient ID or NIC. Please check and try again.",
        )
    token = create_access_token(
        subject=patient.id,
        kind=PATIENT_TOKEN,
        secret=settings.secret_key,
        alg=settings.jwt_alg,
        expires_minutes=settings.patient_session_minutes,
        claims={"pid": patient.unique_patient_id},
    )
    record_event(
        db,
        actor=Actor.from_patient(patient),
        action="auth.patient_login",
        entity_type="patient",
        entity_id=str(patient.id),
        ip_address=ip_address,
    )
    return PatientToken(
        access_token=token,
        patient_id=patient.id,
        unique_patient_id=patient.unique_patient_id,
        expires_in_minutes=settings.patient_session_minutes,
    )
