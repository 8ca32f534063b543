from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hospital_queue.models.slot_template import MAX_TEMPLATE_CAPACITY, BookingCategory


class SlotTemplateCreate(BaseModel):
    category: BookingCategory
    clinic_id: Optional[int] = None
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    capacity: int = Field(ge=1, le=MAX_TEMPLATE_CAPACITY)
    doctor_name: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class SlotTemplateUpdate(BaseModel):
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    capacity: Optional[int] = Field(default=None, ge=1, le=MAX_TEMPLATE_CAPACITY)
    doctor_name: Optional[str] = None
    is_active: Optional[bool] = None


class SlotTemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: BookingCategory
    clinic_id: Optional[int] = None
    day_of_week: int
    start_time: time
    end_time: time
    capacity: int
    doctor_name: Optional[str] = None
    is_active: bool
    created_at: datetime
