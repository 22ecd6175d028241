from __future__ import annotations

from datetime import datetime

from typing import Iterable, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import (
    Item,
    ItemIn,
    ItemSummary,
    Loan,
    LoanView,
    Member,
    MemberIn,
    MemberSummary,
    OPEN_STATUSES,
)
from orm import ItemORM, LoanORM, MemberORM
from timeutil import utcnow

UNKNOWN = "Unknown"

def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()

def _member_to_schema(m: MemberORM) -> Member:
    return Member(
        id=m.id,
        name=m.name,
        email=m.email,
        phone=m.phone,
        student_id=m.student_id,
        created_at=m.created_at,
        updated_at=m.updated_at,
    )

def _item_to_schema(i: ItemORM) -> Item:
    return Item(
        id=i.id,
        title=i.title,
        type=i.type,  # type: ignore
        owner_id=i.owner_id,
        description=i.description,
        author=i.author,
        isbn=i.isbn,
        available=i.available,
        created_at=i.created_at,
        updated_at=i.updated_at,
    )

def _loan_to_schema(l: LoanORM) -> Loan:
    return Loan(
        id=l.id,
        item_id=l.item_id,
        borrower_member_id=l.borrower_member_id,
        borrow_date=l.borrow_date,
        due_date=l.due_date,
        return_date=l.return_date,
        status=l.status,  # type: ignore
        created_at=l.created_at,
        updated_at=l.updated_at,
    )


# ---------- Member ----------
def get_member(db: Session, member_id: str) -> Optional[Member]:
    row = db.get(MemberORM, member_id)
    return _member_to_schema(row) if row else None


def member_exists(db: Session, member_id: str) -> bool:
    # always hits the database; db.get() may answer from a stale identity map
    return db.execute(select(MemberORM.id).where(MemberORM.id == member_id)).first() is not None


def get_member_by_email(db: Session, email: str) -> Optional[Member]:
    row = db.execute(
        select(MemberORM).where(MemberORM.email == email.strip().lower())
    ).scalar_one_or_none()
    return _member_to_schema(row) if row else None


def list_members(db: Session) -> list[Member]:
    rows = db.execute(select(MemberORM).order_by(MemberORM.created_at.desc())).scalars().all()
    return [_member_to_schema(m) for m in rows]


def insert_member(db: Session, body: MemberIn, *, commit: bool = True) -> Member:
    now = utcnow()
    m = MemberORM(
        id=str(uuid4()),
        name=body.name,
        email=body.email,
        phone=body.phone,
        student_id=body.student_id,
        created_at=now,
        updated_at=now,
    )
    db.add(m)
    persist(db, commit=commit)
    if commit:
        db.refresh(m)
    return _member_to_schema(m)


# ---------- Item ----------
def get_item(db: Session, item_id: str) -> Optional[Item]:
    row = db.get(ItemORM, item_id)
    return _item_to_schema(row) if row else None


def list_items(
    db: Session,
    *,
    available: Optional[bool] = None,
    type: Optional[str] = None,
    owner_id: Optional[str] = None,
) -> list[Item]:
    stmt = select(ItemORM)
    if available is not None:
        stmt = stmt.where(ItemORM.available == available)
    if type:
        stmt = stmt.where(ItemORM.type == type.lower())
    if owner_id:
        stmt = stmt.where(ItemORM.owner_id == owner_id)

    stmt = stmt.order_by(ItemORM.created_at.desc())
    return [_item_to_schema(i) for i in db.execute(stmt).scalars().all()]


def insert_item(db: Session, body: ItemIn, *, commit: bool = True) -> Item:
    now = utcnow()
    i = ItemORM(
        id=str(uuid4()),
        title=body.title,
        type=body.type,
        owner_id=body.owner_id,
        description=body.description,
        author=body.author,
        isbn=body.isbn,
        available=True,
        created_at=now,
        updated_at=now,
    )
    db.add(i)
    persist(db, commit=commit)
    if commit:
        db.refresh(i)
    return _item_to_schema(i)


def apply_item_changes(db: Session, item_id: str, changes: dict, *, commit: bool = True) -> Optional[Item]:
    i = db.get(ItemORM, item_id)
    if not i:
        return None

    for k, v in changes.items():
        setattr(i, k, v)
    i.updated_at = utcnow()

    persist(db, commit=commit)
    if commit:
        db.refresh(i)
    return _item_to_schema(i)


# ---------- Loan ----------
def get_loan(db: Session, loan_id: str) -> Optional[Loan]:
    row = db.get(LoanORM, loan_id)
    return _loan_to_schema(row) if row else None


def build_loans_query(
    *,
    status: Optional[str] = None,
    statuses: Optional[Iterable[str]] = None,
    borrower_member_id: Optional[str] = None,
    item_id: Optional[str] = None,
    borrow_from: Optional[datetime] = None,
    borrow_to: Optional[datetime] = None,
):
    stmt = select(LoanORM)
    if status:
        stmt = stmt.where(LoanORM.status == status)
    if statuses is not None:
        stmt = stmt.where(LoanORM.status.in_(tuple(statuses)))
    if borrower_member_id:
        stmt = stmt.where(LoanORM.borrower_member_id == borrower_member_id)
    if item_id:
        stmt = stmt.where(LoanORM.item_id == item_id)
    if borrow_from is not None:
        stmt = stmt.where(LoanORM.borrow_date >= borrow_from)
    if borrow_to is not None:
        stmt = stmt.where(LoanORM.borrow_date <= borrow_to)
    return stmt


def list_loans(
    db: Session,
    *,
    status: Optional[str] = None,
    statuses: Optional[Iterable[str]] = None,
    borrower_member_id: Optional[str] = None,
    item_id: Optional[str] = None,
    borrow_from: Optional[datetime] = None,
    borrow_to: Optional[datetime] = None,
    order_by_due: bool = False,
) -> list[Loan]:
    stmt = build_loans_query(
        status=status,
        statuses=statuses,
        borrower_member_id=borrower_member_id,
        item_id=item_id,
        borrow_from=borrow_from,
        borrow_to=borrow_to,
    )
    if order_by_due:
        stmt = stmt.order_by(LoanORM.due_date.asc())
    else:
        stmt = stmt.order_by(LoanORM.borrow_date.desc())
    return [_loan_to_schema(l) for l in db.execute(stmt).scalars().all()]


def list_open_loans(
    db: Session,
    *,
    item_id: Optional[str] = None,
    borrower_member_id: Optional[str] = None,
) -> list[Loan]:
    return list_loans(
        db,
        statuses=OPEN_STATUSES,
        item_id=item_id,
        borrower_member_id=borrower_member_id,
    )


# ---------- Loan views ----------
def _item_summary(db: Session, item_id: str, cache: dict) -> ItemSummary:
    if item_id not in cache:
        row = db.get(ItemORM, item_id)
        if row is None:
            cache[item_id] = ItemSummary(id=item_id, title=UNKNOWN, missing=True)
        else:
            cache[item_id] = ItemSummary(
                id=row.id,
                title=row.title,
                type=row.type,
                author=row.author,
                owner_id=row.owner_id,
            )
    return cache[item_id]


def _member_summary(db: Session, member_id: str, cache: dict) -> MemberSummary:
    if member_id not in cache:
        row = db.get(MemberORM, member_id)
        if row is None:
            cache[member_id] = MemberSummary(id=member_id, name=UNKNOWN, missing=True)
        else:
            cache[member_id] = MemberSummary(id=row.id, name=row.name, email=row.email)
    return cache[member_id]


def loans_to_views(db: Session, loans: Iterable[Loan]) -> list[LoanView]:
    """
    Attach item/borrower summaries to loans. A reference whose row has since
    vanished resolves to an "Unknown" placeholder instead of failing.
    """
    items: dict[str, ItemSummary] = {}
    members: dict[str, MemberSummary] = {}
    return [
        LoanView(
            **loan.model_dump(),
            item=_item_summary(db, loan.item_id, items),
            borrower=_member_summary(db, loan.borrower_member_id, members),
        )
        for loan in loans
    ]


def loan_to_view(db: Session, loan: Loan) -> LoanView:
    return loans_to_views(db, [loan])[0]
