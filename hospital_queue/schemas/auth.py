from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    must_change_password: bool = False


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PatientLoginRequest(BaseModel):
    unique_patient_id: str = Field(min_length=4, max_length=32)
    nic_last4: str = Field(min_length=4, max_length=4)


class PatientToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    patient_id: int
    unique_patient_id: str
    expires_in_minutes: int
