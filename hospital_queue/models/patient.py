from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospital_queue.models.base import Base, StaffRecordMixin


class Gender(str, enum.Enum):
    male = "Male"
    female = "Female"
    other = "Other"


class Patient(Base, StaffRecordMixin):
    __tablename__ = "patients"
    __table_args__ = (CheckConstraint("age BETWEEN 1 AND 120", name="ck_patients_age"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    unique_patient_id: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    gender: Mapped[Gender] = mapped_column(Enum(Gender, name="gender_enum"), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    nic_number: Mapped[str] = mapped_column(String(12), unique=True, index=True, nullable=False)
    phone_number: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)
    guardian_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    guardian_phone: Mapped[str | None] = mapped_column(String(16), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    bookings = relationship("Booking", back_populates="patient")
    prescriptions = relationship("Prescription", back_populates="patient")
