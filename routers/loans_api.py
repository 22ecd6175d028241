from typing import Any, Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

import crud
import lifecycle
import reports
from dependencies import get_db
from filter_helpers import blank_to_none, normalize_status
from models import Item, LoanView
from validation import parse_optional_timestamp

router = APIRouter(prefix="/loans", tags=["loans"])


@router.post("/borrow", response_model=LoanView, status_code=201)
def borrow_api(
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    loan = lifecycle.borrow(
        db,
        item_id=body.get("item_id"),
        borrower_member_id=body.get("borrower_member_id"),
        due_date=body.get("due_date"),
    )
    return crud.loan_to_view(db, loan)


@router.post("/return", response_model=LoanView)
def return_api(
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    loan = lifecycle.return_loan(db, body.get("loan_id"))
    return crud.loan_to_view(db, loan)


@router.get("", response_model=list[LoanView])
def list_loans_api(
    status: Optional[str] = None,
    borrower_member_id: Optional[str] = None,
    item_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return reports.list_loan_views(
        db,
        status=normalize_status(status),
        borrower_member_id=blank_to_none(borrower_member_id),
        item_id=blank_to_none(item_id),
    )


@router.get("/history", response_model=list[LoanView])
def loan_history_api(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return reports.loan_history(
        db,
        start=parse_optional_timestamp("start_date", start_date),
        end=parse_optional_timestamp("end_date", end_date),
        status=normalize_status(status),
    )


@router.get("/available-items", response_model=list[Item])
def available_items_api(db: Session = Depends(get_db)):
    return reports.list_available_items(db)


@router.get("/borrowed-by/{member_id}", response_model=list[LoanView])
def borrowed_by_api(
    member_id: str,
    db: Session = Depends(get_db),
):
    return reports.list_borrowed_by(db, member_id)


@router.get("/{loan_id}", response_model=LoanView)
def get_loan_api(
    loan_id: str,
    db: Session = Depends(get_db),
):
    return reports.get_loan_view(db, loan_id)
