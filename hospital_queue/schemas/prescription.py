from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MedicineItem(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    dosage: str = Field(min_length=1, max_length=120)
    duration: Optional[str] = None
    instructions: Optional[str] = None


class PrescriptionCreate(BaseModel):
    booking_id: int
    doctor_name: str = Field(min_length=2, max_length=120)
    doctor_reg_number: str = Field(min_length=2, max_length=64)
    diagnosis: Optional[str] = None
    medicines: list[MedicineItem] = Field(min_length=1)
    notes: Optional[str] = None
    valid_until: Optional[date] = None


class PrescriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    booking_id: int
    doctor_name: str
    doctor_reg_number: str
    diagnosis: Optional[str] = None
    medicines: list[MedicineItem]
    notes: Optional[str] = None
    valid_until: date
    pharmacy_collected: bool
    collected_at: Optional[datetime] = None
    issued_by_user_id: int
    issued_at: datetime
