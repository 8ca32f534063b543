from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.models.slot_template import BookingCategory
from hospital_queue.schemas.calendar import BookableOut, SlotAvailabilityOut
from hospital_queue.services.calendar_policy import availability, bookable_dates, check_bookable

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/bookable", response_model=BookableOut)
def get_bookable(
    booking_date: date = Query(alias="date"),
    category: BookingCategory = Query(),
    clinic_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    reason = check_bookable(db, booking_date, category, clinic_id)
    return BookableOut(booking_date=booking_date, bookable=reason is None, reason=reason)


@router.get("/availability", response_model=list[SlotAvailabilityOut])
def get_availability(
    booking_date: date = Query(alias="date"),
    category: BookingCategory = Query(),
    clinic_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    return [
        SlotAvailabilityOut(
            template_id=row.template.id,
            start_time=row.template.start_time,
            end_time=row.template.end_time,
            doctor_name=row.template.doctor_name,
            capacity=row.capacity,
            booked_count=row.booked_count,
            available=row.available,
        )
        for row in availability(db, booking_date, category, clinic_id)
    ]


@router.get("/dates", response_model=list[date])
def get_bookable_dates(
    category: BookingCategory = Query(),
    clinic_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    return bookable_dates(db, category, clinic_id)
