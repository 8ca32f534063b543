from datetime import date, time
from typing import Optional

from pydantic import BaseModel


class BookableOut(BaseModel):
    booking_date: date
    bookable: bool
    reason: Optional[str] = None


class SlotAvailabilityOut(BaseModel):
    template_id: int
    start_time: time
    end_time: time
    doctor_name: Optional[str] = None
    capacity: int
    booked_count: int
    available: int
