from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hospital_queue.models.user import Role


class StaffAccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    full_name: str
    role: Role
    is_active: bool
    must_change_password: bool
    last_login_at: Optional[datetime] = None


class StaffAccountCreate(BaseModel):
    """New desk or clinic account. The holder must replace the password at first login."""

    email: EmailStr
    full_name: str = ""
    role: Role
    # bcrypt only reads the first 72 bytes.
    temp_password: str = Field(min_length=12, max_length=72)


class StaffAccountUpdate(BaseModel):
    full_name: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=12, max_length=72)
