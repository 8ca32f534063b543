from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import get_current_user, require_permission
from hospital_queue.models.user import User
from hospital_queue.schemas.clinic import ClinicCreate, ClinicOut, ClinicUpdate
from hospital_queue.services.actors import Actor
from hospital_queue.services.clinics import create_clinic, get_clinic, list_clinics, update_clinic

router = APIRouter(prefix="/clinics", tags=["clinics"])


@router.get("", response_model=list[ClinicOut])
def get_active_clinics(db: Session = Depends(get_db)):
    return list_clinics(db)


@router.get("/all", response_model=list[ClinicOut])
def get_all_clinics(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return list_clinics(db, include_inactive=True)


@router.post("", response_model=ClinicOut, status_code=status.HTTP_201_CREATED)
def add_clinic(
    payload: ClinicCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("clinics.manage")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    return create_clinic(
        db,
        clinic_name=payload.clinic_name,
        description=payload.description,
        doctor_name=payload.doctor_name,
        specialty=payload.specialty,
        actor=Actor.from_user(user),
        request_id=request_id,
    )


@router.patch("/{clinic_id}", response_model=ClinicOut)
def patch_clinic(
    clinic_id: int,
    payload: ClinicUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("clinics.manage")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    clinic = get_clinic(db, clinic_id)
    if not clinic:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Clinic not found")
    return update_clinic(
        db,
        clinic=clinic,
        changes=payload.model_dump(exclude_unset=True),
        actor=Actor.from_user(user),
        request_id=request_id,
    )
