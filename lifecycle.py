"""Loan state machine.

    active --(due date passes)--> overdue
    active | overdue --(return)--> returned   (terminal)

Borrow and return each write the loan first and the item's `available` flag
second, inside one transaction. Both second steps are conditional UPDATEs, so
of two racing requests exactly one matches a row; the other gets a Conflict.
A storage error between the two writes rolls everything back and surfaces as
InconsistentState.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Union
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import crud
from catalog import require_item, require_member
from errors import Conflict, InconsistentState, NotFound
from models import Loan
from orm import ItemORM, LoanORM
from timeutil import ONE_DAY, utcnow
from validation import validate_borrow, validate_loan_id

logger = logging.getLogger(__name__)

LoanLike = Union[Loan, LoanORM]

NO_SYNC = {"synchronize_session": False}


def is_overdue(loan: LoanLike, now: datetime) -> bool:
    """True when an active loan has passed its due date without a return."""
    return loan.status == "active" and loan.return_date is None and loan.due_date < now


def days_overdue(loan: LoanLike, now: datetime) -> int:
    if loan.return_date is not None or loan.due_date >= now:
        return 0
    return (now - loan.due_date) // ONE_DAY


def apply_overdue_sweep(
    db: Session,
    now: Optional[datetime] = None,
    *,
    loan_id: Optional[str] = None,
    commit: bool = True,
) -> int:
    """
    Persist active -> overdue for every loan matching `is_overdue`, or only
    `loan_id` when given. Loans already overdue are not touched, so running
    it again is a no-op. Returns the number of loans transitioned.
    """
    now = now or utcnow()
    stmt = (
        update(LoanORM)
        .where(
            LoanORM.status == "active",
            LoanORM.return_date.is_(None),
            LoanORM.due_date < now,
        )
        .values(status="overdue", updated_at=now)
        .execution_options(**NO_SYNC)
    )
    if loan_id is not None:
        stmt = stmt.where(LoanORM.id == loan_id)

    count = db.execute(stmt).rowcount
    crud.persist(db, commit=commit)
    db.expire_all()

    if count:
        logger.info("overdue sweep transitioned=%s", count)
    return count


def refresh_overdue(db: Session, loan_id: str, now: Optional[datetime] = None, *, commit: bool = True) -> bool:
    """Lazy single-loan variant of the sweep, run before a loan is read."""
    return apply_overdue_sweep(db, now, loan_id=loan_id, commit=commit) == 1


def borrow(
    db: Session,
    *,
    item_id: Any,
    borrower_member_id: Any,
    due_date: Any,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> Loan:
    now = now or utcnow()
    body = validate_borrow(
        item_id=item_id,
        borrower_member_id=borrower_member_id,
        due_date=due_date,
        now=now,
    )

    item = require_item(db, body.item_id)
    if not item.available:
        raise Conflict("Item is not available for borrowing", item_id=item.id)

    borrower = require_member(db, body.borrower_member_id, entity="borrower")
    if borrower.id == item.owner_id:
        raise Conflict(
            "Cannot borrow your own item",
            item_id=item.id,
            borrower_member_id=borrower.id,
        )

    loan = LoanORM(
        id=str(uuid4()),
        item_id=item.id,
        borrower_member_id=borrower.id,
        borrow_date=now,
        due_date=body.due_date,
        return_date=None,
        status="active",
        created_at=now,
        updated_at=now,
    )
    loan_id = loan.id

    try:
        db.add(loan)
        db.flush()
        # the flush holds the write lock, so a member delete committed since
        # our lookup is visible from here on
        borrower_present = crud.member_exists(db, borrower.id)
        flipped = 0
        if borrower_present:
            flipped = db.execute(
                update(ItemORM)
                .where(ItemORM.id == item.id, ItemORM.available.is_(True))
                .values(available=False, updated_at=now)
                .execution_options(**NO_SYNC)
            ).rowcount
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("borrow failed between writes loan_id=%s item_id=%s", loan_id, item.id)
        raise InconsistentState(
            "Failed to record loan and item availability",
            loan_id=loan_id,
            item_id=item.id,
        ) from exc

    if not borrower_present:
        db.rollback()
        logger.info("borrow rejected, borrower deleted concurrently borrower_member_id=%s", borrower.id)
        raise NotFound("borrower", borrower.id)

    if flipped != 1:
        # another borrow took the item after our availability check
        db.rollback()
        logger.info("borrow rejected, item taken concurrently item_id=%s", item.id)
        raise Conflict("Item is not available for borrowing", item_id=item.id)

    _finish(db, commit=commit, action="borrow", loan_id=loan_id, item_id=item.id)

    logger.info(
        "loan created id=%s item_id=%s borrower_member_id=%s due_date=%s",
        loan_id,
        item.id,
        borrower.id,
        body.due_date.isoformat(),
    )
    return crud.get_loan(db, loan_id)  # type: ignore[return-value]


def return_loan(
    db: Session,
    loan_id: Any,
    *,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> Loan:
    now = now or utcnow()
    validate_loan_id(loan_id)

    row = db.get(LoanORM, loan_id)
    if row is None:
        raise NotFound("loan", loan_id)
    if row.status == "returned":
        raise Conflict("Item has already been returned", loan_id=loan_id)
    item_id = row.item_id

    try:
        closed = db.execute(
            update(LoanORM)
            .where(LoanORM.id == loan_id, LoanORM.status != "returned")
            .values(status="returned", return_date=now, updated_at=now)
            .execution_options(**NO_SYNC)
        ).rowcount
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("return failed loan_id=%s", loan_id)
        raise InconsistentState("Failed to record return", loan_id=loan_id) from exc

    if closed != 1:
        db.rollback()
        logger.info("return rejected, loan closed concurrently loan_id=%s", loan_id)
        raise Conflict("Item has already been returned", loan_id=loan_id)

    try:
        freed = db.execute(
            update(ItemORM)
            .where(ItemORM.id == item_id)
            .values(available=True, updated_at=now)
            .execution_options(**NO_SYNC)
        ).rowcount
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("return failed between writes loan_id=%s item_id=%s", loan_id, item_id)
        raise InconsistentState(
            "Failed to restore item availability",
            loan_id=loan_id,
            item_id=item_id,
        ) from exc

    if freed == 0:
        logger.warning("returned loan references missing item loan_id=%s item_id=%s", loan_id, item_id)

    _finish(db, commit=commit, action="return", loan_id=loan_id, item_id=item_id)
    logger.info("loan returned id=%s item_id=%s", loan_id, item_id)
    return crud.get_loan(db, loan_id)  # type: ignore[return-value]


def _finish(db: Session, *, commit: bool, action: str, loan_id: str, item_id: str) -> None:
    try:
        crud.persist(db, commit=commit)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s commit failed loan_id=%s item_id=%s", action, loan_id, item_id)
        raise InconsistentState(
            f"Failed to commit {action}",
            loan_id=loan_id,
            item_id=item_id,
        ) from exc
    db.expire_all()
