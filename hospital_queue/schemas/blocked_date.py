from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class BlockedDateCreate(BaseModel):
    blocked_date: date
    reason: str = Field(min_length=3, max_length=255)


class BlockedDateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    blocked_date: date
    reason: str
    created_at: datetime


class BlockedDateCreated(BlockedDateOut):
    affected_bookings: int = 0
