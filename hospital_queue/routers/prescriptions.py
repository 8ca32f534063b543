from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import require_permission
from hospital_queue.models.user import User
from hospital_queue.schemas.prescription import PrescriptionCreate, PrescriptionOut
from hospital_queue.services.actors import Actor
from hospital_queue.services.prescriptions import (
    PrescriptionError,
    get_prescription,
    issue_prescription,
    mark_collected,
)

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])


@router.post("", response_model=PrescriptionOut, status_code=status.HTTP_201_CREATED)
def create_prescription(
    payload: PrescriptionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("prescriptions.issue")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    try:
        return issue_prescription(
            db,
            booking_id=payload.booking_id,
            doctor_name=payload.doctor_name,
            doctor_reg_number=payload.doctor_reg_number,
            diagnosis=payload.diagnosis,
            medicines=[item.model_dump() for item in payload.medicines],
            notes=payload.notes,
            valid_until=payload.valid_until,
            actor=Actor.from_user(user),
            request_id=request_id,
        )
    except PrescriptionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/{prescription_id}/collect", response_model=PrescriptionOut)
def collect_prescription(
    prescription_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("prescriptions.issue")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    prescription = get_prescription(db, prescription_id)
    if not prescription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prescription not found")
    try:
        return mark_collected(
            db, prescription=prescription, actor=Actor.from_user(user), request_id=request_id
        )
    except PrescriptionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
