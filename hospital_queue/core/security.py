from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

STAFF_TOKEN = "staff"
PATIENT_TOKEN = "patient"
TOKEN_KINDS = frozenset({STAFF_TOKEN, PATIENT_TOKEN})


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    *,
    subject: int,
    kind: str,
    secret: str,
    alg: str,
    expires_minutes: int,
    claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Sign a bearer token for a staff user or a patient session."""
    if kind not in TOKEN_KINDS:
        raise ValueError(f"Unknown token kind: {kind}")
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = dict(claims or {})
    payload.update(
        {
            "sub": str(subject),
            "kind": kind,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
        }
    )
    return jwt.encode(payload, secret, algorithm=alg)


def read_access_token(token: str, *, secret: str, alg: str) -> tuple[str, int]:
    """Return ``(kind, subject_id)``; raises ``JWTError`` for anything unusable."""
    payload = jwt.decode(token, secret, algorithms=[alg])
    kind = payload.get("kind")
    subject = payload.get("sub")
    if kind not in TOKEN_KINDS or not subject or not str(subject).isdigit():
        raise JWTError("Malformed token claims")
    return kind, int(subject)
