from datetime import date

from pydantic import BaseModel


class DailyReportOut(BaseModel):
    report_date: date
    counts: dict[str, dict[str, int]]


class MonthlyRegistrationsOut(BaseModel):
    month: str
    registrations: int
