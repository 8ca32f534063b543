from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hospital_queue.models.booking import BookingStatus
from hospital_queue.models.slot_template import BookingCategory
from hospital_queue.schemas.patient import PatientSummary


class BookingCreate(BaseModel):
    category: BookingCategory
    booking_date: date
    template_id: int
    clinic_id: Optional[int] = None
    patient_id: Optional[int] = None


class AllocationOut(BaseModel):
    booking_id: int
    slot_number: int


class StatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(default=None, max_length=500)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class BookingSession(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_time: time
    end_time: time
    doctor_name: Optional[str] = None


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    category: BookingCategory
    clinic_id: Optional[int] = None
    booking_date: date
    template_id: int
    slot_number: int
    status: BookingStatus
    template: BookingSession
    booked_at: datetime
    verified_at: Optional[datetime] = None
    verified_by_user_id: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_user_id: Optional[int] = None
    cancellation_reason: Optional[str] = None
    status_changed_at: Optional[datetime] = None


class BookingPage(BaseModel):
    items: list[BookingOut]
    total: int


class QueueEntryOut(BaseModel):
    booking: BookingOut
    patient: PatientSummary
    estimated_time: time
