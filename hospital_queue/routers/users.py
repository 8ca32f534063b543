from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import require_admin
from hospital_queue.models.user import Role, User
from hospital_queue.schemas.staff import StaffAccountCreate, StaffAccountOut, StaffAccountUpdate
from hospital_queue.services.actors import Actor
from hospital_queue.services.users import (
    StaffAccountConflictError,
    StaffAccountError,
    get_user_by_id,
    list_users,
    register_staff,
    update_user,
)

router = APIRouter(prefix="/users", tags=["users"])


def _load(db: Session, user_id: int) -> User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("", response_model=list[StaffAccountOut])
def get_users(db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return list_users(db)


@router.get("/roles", response_model=list[str])
def get_roles(_admin: User = Depends(require_admin)):
    return [role.value for role in Role]


@router.post("", response_model=StaffAccountOut, status_code=status.HTTP_201_CREATED)
def add_user(
    payload: StaffAccountCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    try:
        return register_staff(
            db,
            email=payload.email,
            temp_password=payload.temp_password,
            role=payload.role,
            full_name=payload.full_name,
            actor=Actor.from_user(admin),
            request_id=request_id,
        )
    except StaffAccountConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.get("/{user_id}", response_model=StaffAccountOut)
def get_user(user_id: int, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return _load(db, user_id)


@router.patch("/{user_id}", response_model=StaffAccountOut)
def patch_user(
    user_id: int,
    payload: StaffAccountUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    user = _load(db, user_id)
    try:
        return update_user(
            db,
            user=user,
            changes=payload.model_dump(exclude_unset=True),
            actor=Actor.from_user(admin),
            request_id=request_id,
        )
    except StaffAccountError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
