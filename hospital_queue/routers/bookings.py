from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import get_current_actor, get_current_user
from hospital_queue.models.booking import BookingStatus
from hospital_queue.models.slot_template import BookingCategory
from hospital_queue.models.user import User
from hospital_queue.routers.errors import client_ip, raise_for_rejection
from hospital_queue.schemas.booking import (
    AllocationOut,
    BookingCreate,
    BookingOut,
    CancelRequest,
    QueueEntryOut,
    StatusUpdate,
)
from hospital_queue.schemas.patient import PatientSummary
from hospital_queue.services import booking_status
from hospital_queue.services.actors import Actor
from hospital_queue.services.allocator import allocate
from hospital_queue.services.bookings import daily_queue, get_booking
from hospital_queue.services.outcomes import Rejection
from hospital_queue.services.permissions import can_manage_bookings

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=AllocationOut, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    if actor.is_patient:
        if payload.patient_id is not None and payload.patient_id != actor.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Patients can only book for themselves")
        patient_id = actor.id
    else:
        if not can_manage_bookings(actor.role, payload.category):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        if payload.patient_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="patient_id is required")
        patient_id = payload.patient_id

    outcome = allocate(
        db,
        patient_id=patient_id,
        category=payload.category,
        clinic_id=payload.clinic_id,
        booking_date=payload.booking_date,
        template_id=payload.template_id,
        actor=actor,
        request_id=request_id,
        ip_address=client_ip(request),
    )
    if isinstance(outcome, Rejection):
        raise_for_rejection(outcome)
    return AllocationOut(booking_id=outcome.booking_id, slot_number=outcome.slot_number)


@router.get("/queue", response_model=list[QueueEntryOut])
def get_queue(
    queue_date: date = Query(alias="date"),
    category: BookingCategory | None = Query(default=None),
    clinic_id: int | None = Query(default=None),
    template_id: int | None = Query(default=None),
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    allowed = [item for item in BookingCategory if can_manage_bookings(user.role, item)]
    if category is not None and category not in allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    if category is None and len(allowed) == 1:
        category = allowed[0]
    entries = daily_queue(
        db,
        queue_date,
        category=category,
        clinic_id=clinic_id,
        template_id=template_id,
        status=status_filter,
    )
    return [
        QueueEntryOut(
            booking=BookingOut.model_validate(entry.booking),
            patient=PatientSummary.model_validate(entry.booking.patient),
            estimated_time=entry.estimated_time,
        )
        for entry in entries
    ]


@router.get("/{booking_id}", response_model=BookingOut)
def read_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    booking = get_booking(db, booking_id)
    if booking is None or (actor.is_patient and booking.patient_id != actor.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if actor.is_staff and not can_manage_bookings(actor.role, booking.category):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return booking


@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(
    booking_id: int,
    request: Request,
    payload: CancelRequest | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    outcome = booking_status.cancel(
        db,
        booking_id=booking_id,
        actor=actor,
        reason=payload.reason if payload else None,
        request_id=request_id,
        ip_address=client_ip(request),
    )
    if isinstance(outcome, Rejection):
        raise_for_rejection(outcome)
    return outcome


@router.post("/{booking_id}/status", response_model=BookingOut)
def update_booking_status(
    booking_id: int,
    payload: StatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    outcome = booking_status.transition(
        db,
        booking_id=booking_id,
        actor=Actor.from_user(user),
        new_status=payload.status,
        reason=payload.reason,
        request_id=request_id,
        ip_address=client_ip(request),
    )
    if isinstance(outcome, Rejection):
        raise_for_rejection(outcome)
    return outcome
