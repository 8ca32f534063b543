from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import require_permission
from hospital_queue.models.user import User
from hospital_queue.schemas.reports import DailyReportOut, MonthlyRegistrationsOut
from hospital_queue.services.reports import daily_status_counts, monthly_registrations

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/daily", response_model=DailyReportOut)
def daily_report(
    report_date: date = Query(alias="date"),
    db: Session = Depends(get_db),
    _user: User = Depends(require_permission("reports.view")),
):
    return DailyReportOut(report_date=report_date, counts=daily_status_counts(db, report_date))


@router.get("/registrations", response_model=list[MonthlyRegistrationsOut])
def registrations_report(
    months: int = Query(default=12, ge=1, le=36),
    db: Session = Depends(get_db),
    _user: User = Depends(require_permission("reports.view")),
):
    return monthly_registrations(db, months=months)
