from __future__ import annotations

import enum
from datetime import time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospital_queue.models.base import Base, StaffRecordMixin

MAX_TEMPLATE_CAPACITY = 500


class BookingCategory(str, enum.Enum):
    general = "general"
    specialty = "specialty"


class SlotTemplate(Base, StaffRecordMixin):
    __tablename__ = "slot_templates"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_slot_templates_day_of_week"),
        CheckConstraint(
            f"capacity >= 1 AND capacity <= {MAX_TEMPLATE_CAPACITY}",
            name="ck_slot_templates_capacity",
        ),
        CheckConstraint("end_time > start_time", name="ck_slot_templates_time_range"),
        Index(
            "uq_slot_templates_active_instant",
            "category",
            "clinic_id",
            "day_of_week",
            "start_time",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    category: Mapped[BookingCategory] = mapped_column(
        Enum(BookingCategory, name="booking_category"), nullable=False, index=True
    )
    clinic_id: Mapped[int | None] = mapped_column(ForeignKey("clinics.id"), nullable=True, index=True)
    # 0 = Sunday ... 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    doctor_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    clinic = relationship("Clinic", back_populates="templates", lazy="joined")
