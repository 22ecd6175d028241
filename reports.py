"""Read-side projections over members, items and loans.

Loan reads re-evaluate the overdue rule first (`sweep=True`) so that status
is current when returned; pass `sweep=False` for a side-effect-free read.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

import crud
from catalog import require_loan
from lifecycle import apply_overdue_sweep, days_overdue, refresh_overdue
from models import (
    DashboardStats,
    Item,
    ItemBorrowCount,
    LoanView,
    MemberBorrowCount,
    Notification,
    NotificationFeed,
    OPEN_STATUSES,
    OverallStats,
)
from orm import ItemORM, LoanORM, MemberORM
from timeutil import utcnow

TOP_N = 5
NOTIFICATION_LIMIT = 10


def get_loan_view(db: Session, loan_id: str, *, now: Optional[datetime] = None, sweep: bool = True) -> LoanView:
    now = now or utcnow()
    if sweep:
        refresh_overdue(db, loan_id, now)
    return crud.loan_to_view(db, require_loan(db, loan_id))


def list_loan_views(
    db: Session,
    *,
    status: Optional[str] = None,
    borrower_member_id: Optional[str] = None,
    item_id: Optional[str] = None,
    now: Optional[datetime] = None,
    sweep: bool = True,
) -> list[LoanView]:
    if sweep:
        apply_overdue_sweep(db, now or utcnow())
    loans = crud.list_loans(
        db,
        status=status,
        borrower_member_id=borrower_member_id,
        item_id=item_id,
    )
    return crud.loans_to_views(db, loans)


def list_borrowed_by(db: Session, member_id: str, *, now: Optional[datetime] = None) -> list[LoanView]:
    apply_overdue_sweep(db, now or utcnow())
    return crud.loans_to_views(db, crud.list_open_loans(db, borrower_member_id=member_id))


def list_available_items(db: Session) -> list[Item]:
    return crud.list_items(db, available=True)


def list_overdue(db: Session, *, now: Optional[datetime] = None, persist: bool = True) -> list[LoanView]:
    """
    Loans past due and not returned, earliest due date first. With
    `persist=True` the active -> overdue transition is written as well.
    """
    now = now or utcnow()
    if persist:
        apply_overdue_sweep(db, now)

    candidates = crud.list_loans(db, statuses=OPEN_STATUSES, order_by_due=True)
    overdue = [
        l for l in candidates
        if l.return_date is None and l.due_date < now
    ]
    return crud.loans_to_views(db, overdue)


def current_borrows(
    db: Session,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> list[LoanView]:
    apply_overdue_sweep(db, now or utcnow())
    loans = crud.list_loans(
        db,
        statuses=OPEN_STATUSES,
        borrow_from=start,
        borrow_to=end,
        order_by_due=True,
    )
    return crud.loans_to_views(db, loans)


def loan_history(
    db: Session,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[LoanView]:
    apply_overdue_sweep(db, now or utcnow())
    loans = crud.list_loans(db, status=status, borrow_from=start, borrow_to=end)
    return crud.loans_to_views(db, loans)


def _count(db: Session, stmt) -> int:
    return int(db.execute(stmt).scalar_one())


def overall_stats(db: Session) -> OverallStats:
    total_items = _count(db, select(func.count()).select_from(ItemORM))
    available_items = _count(db, select(func.count()).select_from(ItemORM).where(ItemORM.available.is_(True)))

    def loans_where(*conds) -> int:
        return _count(db, select(func.count()).select_from(LoanORM).where(*conds))

    return OverallStats(
        total_members=_count(db, select(func.count()).select_from(MemberORM)),
        total_items=total_items,
        available_items=available_items,
        borrowed_items=total_items - available_items,
        total_loans=loans_where(),
        active_loans=loans_where(LoanORM.status.in_(OPEN_STATUSES)),
        returned_loans=loans_where(LoanORM.status == "returned"),
        overdue_loans=loans_where(LoanORM.status == "overdue"),
    )


def most_borrowed_items(db: Session, *, limit: int = TOP_N) -> list[ItemBorrowCount]:
    borrow_count = func.count(LoanORM.id).label("borrow_count")
    active = func.sum(case((LoanORM.status.in_(OPEN_STATUSES), 1), else_=0)).label("active_borrows")
    rows = db.execute(
        select(LoanORM.item_id, borrow_count, active)
        .group_by(LoanORM.item_id)
        .order_by(borrow_count.desc(), LoanORM.item_id.asc())
        .limit(limit)
    ).all()

    out: list[ItemBorrowCount] = []
    for item_id, n, n_active in rows:
        item = db.get(ItemORM, item_id)
        out.append(
            ItemBorrowCount(
                item_id=item_id,
                title=item.title if item else crud.UNKNOWN,
                author=item.author if item else None,
                borrow_count=n,
                active_borrows=int(n_active or 0),
            )
        )
    return out


def borrow_counts_by_member(db: Session, *, limit: int = TOP_N) -> list[MemberBorrowCount]:
    borrow_count = func.count(LoanORM.id).label("borrow_count")
    active = func.sum(case((LoanORM.status.in_(OPEN_STATUSES), 1), else_=0)).label("active_borrows")
    returned = func.sum(case((LoanORM.status == "returned", 1), else_=0)).label("returned_count")
    rows = db.execute(
        select(LoanORM.borrower_member_id, borrow_count, active, returned)
        .group_by(LoanORM.borrower_member_id)
        .order_by(borrow_count.desc(), LoanORM.borrower_member_id.asc())
        .limit(limit)
    ).all()

    out: list[MemberBorrowCount] = []
    for member_id, n, n_active, n_returned in rows:
        member = db.get(MemberORM, member_id)
        out.append(
            MemberBorrowCount(
                member_id=member_id,
                name=member.name if member else crud.UNKNOWN,
                email=member.email if member else None,
                borrow_count=n,
                active_borrows=int(n_active or 0),
                returned_count=int(n_returned or 0),
            )
        )
    return out


def dashboard_stats(db: Session, *, now: Optional[datetime] = None) -> DashboardStats:
    apply_overdue_sweep(db, now or utcnow())
    return DashboardStats(
        overall=overall_stats(db),
        most_borrowed_items=most_borrowed_items(db),
        borrow_counts_by_member=borrow_counts_by_member(db),
    )


def notifications(
    db: Session,
    *,
    now: Optional[datetime] = None,
    limit: int = NOTIFICATION_LIMIT,
) -> NotificationFeed:
    now = now or utcnow()
    views = list_overdue(db, now=now)[:limit]

    data = [
        Notification(
            message=f'Item "{v.item.title}" is overdue. Borrower: {v.borrower.name}',
            loan_id=v.id,
            item_id=v.item_id,
            borrower_id=v.borrower_member_id,
            due_date=v.due_date,
            days_overdue=days_overdue(v, now),
        )
        for v in views
    ]
    return NotificationFeed(count=len(data), has_overdue=bool(data), data=data)
