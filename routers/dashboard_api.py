from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import reports
from dependencies import get_db
from models import DashboardStats, LoanView, NotificationFeed
from validation import parse_optional_timestamp

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/overdue", response_model=list[LoanView])
def overdue_api(db: Session = Depends(get_db)):
    return reports.list_overdue(db)


@router.get("/stats", response_model=DashboardStats)
def stats_api(db: Session = Depends(get_db)):
    return reports.dashboard_stats(db)


@router.get("/current-borrows", response_model=list[LoanView])
def current_borrows_api(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return reports.current_borrows(
        db,
        start=parse_optional_timestamp("start_date", start_date),
        end=parse_optional_timestamp("end_date", end_date),
    )


@router.get("/notifications", response_model=NotificationFeed)
def notifications_api(db: Session = Depends(get_db)):
    return reports.notifications(db)
