"""Referential checks for destructive operations.

There are no FOREIGN KEY constraints, so a member or item may only be
deleted while no active/overdue loan points at it. The delete itself is
conditional on that, so a borrow committed after our check still blocks it.
"""
from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

import crud
from catalog import require_item, require_member
from errors import Conflict
from models import OPEN_STATUSES
from orm import ItemORM, LoanORM, MemberORM

logger = logging.getLogger(__name__)


def _open_loans_for_item(item_id: str):
    return select(LoanORM.id).where(
        LoanORM.item_id == item_id,
        LoanORM.status.in_(OPEN_STATUSES),
    )


def _open_loans_involving_member(member_id: str):
    # a loan where the member is both borrower and (current) owner appears once
    return (
        select(LoanORM.id)
        .outerjoin(ItemORM, ItemORM.id == LoanORM.item_id)
        .where(
            or_(LoanORM.borrower_member_id == member_id, ItemORM.owner_id == member_id),
            LoanORM.status.in_(OPEN_STATUSES),
        )
    )


def _count(db: Session, stmt) -> int:
    return int(db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one())


def count_open_loans_for_item(db: Session, item_id: str) -> int:
    return _count(db, _open_loans_for_item(item_id))


def count_open_loans_for_member(db: Session, member_id: str) -> int:
    """Distinct open loans the member is borrowing or that are on items they own."""
    return _count(db, _open_loans_involving_member(member_id))


def delete_member(db: Session, member_id: str, *, commit: bool = True) -> str:
    require_member(db, member_id)

    blocking = count_open_loans_for_member(db, member_id)
    if blocking:
        raise _member_blocked(member_id, blocking)

    result = db.execute(
        delete(MemberORM).where(
            MemberORM.id == member_id,
            ~_open_loans_involving_member(member_id).exists(),
        ).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise _member_blocked(member_id, count_open_loans_for_member(db, member_id))

    crud.persist(db, commit=commit)
    db.expire_all()
    logger.info("member deleted id=%s", member_id)
    return member_id


def delete_item(db: Session, item_id: str, *, commit: bool = True) -> str:
    require_item(db, item_id)

    if count_open_loans_for_item(db, item_id):
        raise _item_blocked(item_id)

    result = db.execute(
        delete(ItemORM).where(
            ItemORM.id == item_id,
            ~_open_loans_for_item(item_id).exists(),
        ).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise _item_blocked(item_id)

    crud.persist(db, commit=commit)
    db.expire_all()
    logger.info("item deleted id=%s", item_id)
    return item_id


def _member_blocked(member_id: str, count: int) -> Conflict:
    logger.info("member delete blocked id=%s loans_count=%s", member_id, count)
    return Conflict(
        f"Cannot delete member. They have {count} active loan(s). Please return all items first.",
        member_id=member_id,
        loans_count=count,
    )


def _item_blocked(item_id: str) -> Conflict:
    logger.info("item delete blocked id=%s", item_id)
    return Conflict(
        "Cannot delete item that is currently borrowed. Please return it first.",
        item_id=item_id,
    )


def find_inconsistencies(db: Session) -> list[dict]:
    """
    Report every violation of the availability and return-date invariants.
    Detection only; nothing is repaired.
    """
    problems: list[dict] = []

    open_counts = dict(
        db.execute(
            select(LoanORM.item_id, func.count())
            .where(LoanORM.status.in_(OPEN_STATUSES))
            .group_by(LoanORM.item_id)
        ).all()
    )

    for item in db.execute(select(ItemORM).order_by(ItemORM.id)).scalars():
        n = open_counts.get(item.id, 0)
        if n > 1:
            problems.append({"kind": "multiple_open_loans", "item_id": item.id, "loans_count": n})
        if item.available and n:
            problems.append({"kind": "available_with_open_loan", "item_id": item.id})
        if not item.available and not n:
            problems.append({"kind": "unavailable_without_open_loan", "item_id": item.id})

    mismatched = db.execute(
        select(LoanORM.id, LoanORM.status).where(
            (LoanORM.return_date.is_not(None) & (LoanORM.status != "returned"))
            | (LoanORM.return_date.is_(None) & (LoanORM.status == "returned"))
        )
    ).all()
    for loan_id, status in mismatched:
        problems.append({"kind": "return_date_mismatch", "loan_id": loan_id, "status": status})

    return problems
