from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import (
    ensure_patient_access,
    get_current_actor,
    get_current_patient,
    get_optional_actor,
    require_permission,
)
from hospital_queue.models.booking import BookingStatus
from hospital_queue.models.patient import Patient
from hospital_queue.models.slot_template import BookingCategory
from hospital_queue.models.user import User
from hospital_queue.routers.errors import client_ip
from hospital_queue.schemas.booking import BookingOut, BookingPage
from hospital_queue.schemas.patient import PatientCreate, PatientOut, PatientSummary
from hospital_queue.schemas.prescription import PrescriptionOut
from hospital_queue.services.actors import Actor
from hospital_queue.services.bookings import patient_bookings, upcoming_bookings
from hospital_queue.services.patients import (
    RegistrationConflictError,
    register_patient,
    search_patients,
)
from hospital_queue.services.permissions import has_permission
from hospital_queue.services.prescriptions import list_for_patient

router = APIRouter(prefix="/patients", tags=["patients"])


@router.post("", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_optional_actor),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    if actor is not None:
        if actor.is_patient:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Already registered")
        if not has_permission(actor.role, "patients.register"):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    try:
        return register_patient(
            db,
            full_name=payload.full_name,
            age=payload.age,
            gender=payload.gender,
            address=payload.address,
            nic_number=payload.nic_number,
            phone_number=payload.phone_number,
            guardian_name=payload.guardian_name,
            guardian_phone=payload.guardian_phone,
            actor=actor,
            request_id=request_id,
            ip_address=client_ip(request),
        )
    except RegistrationConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.get("/search", response_model=list[PatientSummary])
def search(
    q: str = Query(min_length=2, max_length=100),
    db: Session = Depends(get_db),
    _user: User = Depends(require_permission("patients.view")),
):
    return search_patients(db, q)


@router.get("/me", response_model=PatientOut)
def me(patient: Patient = Depends(get_current_patient)):
    return patient


@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_permission("patients.view")),
):
    patient = db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return patient


@router.get("/{patient_id}/bookings", response_model=BookingPage)
def list_patient_bookings(
    patient_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    category: BookingCategory | None = Query(default=None),
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    ensure_patient_access(actor, patient_id)
    items, total = patient_bookings(
        db, patient_id, category=category, status=status_filter, limit=limit, offset=offset
    )
    return BookingPage(items=[BookingOut.model_validate(item) for item in items], total=total)


@router.get("/{patient_id}/bookings/upcoming", response_model=list[BookingOut])
def list_upcoming_bookings(
    patient_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    ensure_patient_access(actor, patient_id)
    return upcoming_bookings(db, patient_id)


@router.get("/{patient_id}/prescriptions", response_model=list[PrescriptionOut])
def list_patient_prescriptions(
    patient_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    ensure_patient_access(actor, patient_id)
    return list_for_patient(db, patient_id)
