from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospital_queue.models.base import Base
from hospital_queue.models.slot_template import BookingCategory


class BookingStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    in_consultation = "in_consultation"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


# Statuses that release the patient's day and the slot's capacity.
RELEASED_STATUSES = (BookingStatus.cancelled, BookingStatus.no_show)
TERMINAL_STATUSES = (BookingStatus.completed, BookingStatus.cancelled, BookingStatus.no_show)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint(
            "booking_date", "template_id", "slot_number", name="uq_bookings_date_template_slot"
        ),
        Index("ix_bookings_patient_date", "patient_id", "booking_date"),
        Index("ix_bookings_date_template", "booking_date", "template_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False)
    category: Mapped[BookingCategory] = mapped_column(
        Enum(BookingCategory, name="booking_category"), nullable=False
    )
    clinic_id: Mapped[int | None] = mapped_column(ForeignKey("clinics.id"), nullable=True, index=True)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("slot_templates.id"), nullable=False)
    slot_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        default=BookingStatus.pending,
        nullable=False,
    )
    verified_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    booked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    patient = relationship("Patient", back_populates="bookings", lazy="joined")
    template = relationship("SlotTemplate", lazy="joined")
    clinic = relationship("Clinic", lazy="joined")
    prescriptions = relationship("Prescription", back_populates="booking")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
