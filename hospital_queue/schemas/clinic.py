from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ClinicCreate(BaseModel):
    clinic_name: str = Field(min_length=2, max_length=120)
    description: Optional[str] = None
    doctor_name: Optional[str] = None
    specialty: Optional[str] = None


class ClinicUpdate(BaseModel):
    clinic_name: Optional[str] = Field(default=None, min_length=2, max_length=120)
    description: Optional[str] = None
    doctor_name: Optional[str] = None
    specialty: Optional[str] = None
    is_active: Optional[bool] = None


class ClinicOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    clinic_name: str
    description: Optional[str] = None
    doctor_name: Optional[str] = None
    specialty: Optional[str] = None
    is_active: bool
    created_at: datetime
