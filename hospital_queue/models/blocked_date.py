from __future__ import annotations

from datetime import date

from sqlalchemy import Date, String
from sqlalchemy.orm import Mapped, mapped_column

from hospital_queue.models.base import Base, StaffRecordMixin


class BlockedDate(Base, StaffRecordMixin):
    __tablename__ = "blocked_dates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    blocked_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
