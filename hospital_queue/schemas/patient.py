from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hospital_queue.models.patient import Gender
from hospital_queue.services.patients import (
    MINOR_AGE,
    is_valid_name,
    is_valid_nic,
    is_valid_phone,
    normalize_nic,
)


class PatientCreate(BaseModel):
    full_name: str
    age: int = Field(ge=1, le=120)
    gender: Gender
    address: str = Field(min_length=10, max_length=500)
    nic_number: str
    phone_number: str
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not is_valid_name(value):
            raise ValueError("Name must be 3 to 100 letters and spaces")
        return value.strip()

    @field_validator("nic_number")
    @classmethod
    def _check_nic(cls, value: str) -> str:
        if not is_valid_nic(value):
            raise ValueError("NIC must be 9 digits followed by V or X, or 12 digits")
        return normalize_nic(value)

    @field_validator("phone_number")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        if not is_valid_phone(value):
            raise ValueError("Phone must be +94 or 0 followed by 9 digits")
        return value.strip()

    @model_validator(mode="after")
    def _check_guardian(self):
        if self.age < MINOR_AGE:
            if not self.guardian_name or not self.guardian_name.strip():
                raise ValueError("Guardian name is required for patients under 18")
            if not self.guardian_phone or not is_valid_phone(self.guardian_phone):
                raise ValueError("A valid guardian phone is required for patients under 18")
        elif self.guardian_phone and not is_valid_phone(self.guardian_phone):
            raise ValueError("Guardian phone must be +94 or 0 followed by 9 digits")
        return self


class PatientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    unique_patient_id: str
    full_name: str
    age: int
    gender: Gender
    phone_number: str


class PatientOut(PatientSummary):
    address: str
    nic_number: str
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    is_active: bool
    created_by_user_id: Optional[int] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
