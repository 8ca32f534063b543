from __future__ import annotations

from datetime import date

from sqlalchemy import Date, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from hospital_queue.models.base import Base


class SlotCounter(Base):
    """Last queue number handed out for one template on one date.

    The allocator locks this row for the duration of its count-then-insert
    section, so it doubles as the per-slot-instance mutex.
    """

    __tablename__ = "slot_counters"

    template_id: Mapped[int] = mapped_column(ForeignKey("slot_templates.id"), primary_key=True)
    booking_date: Mapped[date] = mapped_column(Date, primary_key=True)
    last_slot_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
