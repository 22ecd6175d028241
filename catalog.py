"""Member and item registration.

Thin layer over the entity store: validate, check references, insert.
Lookups that must succeed (`require_*`) raise NotFound naming the entity.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import crud
from errors import Conflict, NotFound
from models import Item, Loan, Member
from validation import validate_item, validate_item_update, validate_member

logger = logging.getLogger(__name__)


def require_member(db: Session, member_id: str, *, entity: str = "member") -> Member:
    member = crud.get_member(db, member_id)
    if member is None:
        raise NotFound(entity, member_id)
    return member


def require_item(db: Session, item_id: str) -> Item:
    item = crud.get_item(db, item_id)
    if item is None:
        raise NotFound("item", item_id)
    return item


def require_loan(db: Session, loan_id: str) -> Loan:
    loan = crud.get_loan(db, loan_id)
    if loan is None:
        raise NotFound("loan", loan_id)
    return loan


def _confirm_owner(db: Session, owner_id: str, *, commit: bool) -> None:
    """
    Re-check the owner after our write is flushed and holds the lock, then
    commit. A member delete that landed since the first lookup rolls us back.
    """
    if not crud.member_exists(db, owner_id):
        db.rollback()
        logger.info("item write rejected, owner deleted concurrently owner_id=%s", owner_id)
        raise NotFound("owner", owner_id)
    crud.persist(db, commit=commit)


def create_member(
    db: Session,
    *,
    name: Any,
    email: Any,
    phone: Any = None,
    student_id: Any = None,
    commit: bool = True,
) -> Member:
    body = validate_member(name=name, email=email, phone=phone, student_id=student_id)

    if crud.get_member_by_email(db, body.email):
        raise Conflict("Member with this email already exists", field="email")

    try:
        member = crud.insert_member(db, body, commit=commit)
    except IntegrityError:
        # unique index caught a concurrent registration with the same email
        db.rollback()
        raise Conflict("Member with this email already exists", field="email") from None

    logger.info("member created id=%s email=%s", member.id, member.email)
    return member


def create_item(
    db: Session,
    *,
    title: Any,
    type: Any,
    owner_id: Any,
    description: Any = None,
    author: Any = None,
    isbn: Any = None,
    commit: bool = True,
) -> Item:
    body = validate_item(
        title=title,
        type=type,
        owner_id=owner_id,
        description=description,
        author=author,
        isbn=isbn,
    )
    require_member(db, body.owner_id, entity="owner")

    item = crud.insert_item(db, body, commit=False)
    _confirm_owner(db, body.owner_id, commit=commit)
    logger.info("item created id=%s type=%s owner_id=%s", item.id, item.type, item.owner_id)
    return item


def update_item(db: Session, item_id: str, changes: dict[str, Any], *, commit: bool = True) -> Item:
    """
    Apply a partial update. A new owner must exist; outstanding loans are left
    alone since the borrower does not depend on who currently owns the item.
    """
    data = validate_item_update(changes)
    require_item(db, item_id)

    new_owner: Optional[str] = data.get("owner_id")
    if new_owner is not None:
        require_member(db, new_owner, entity="owner")

    item = crud.apply_item_changes(db, item_id, data, commit=False)
    if item is None:
        raise NotFound("item", item_id)
    if new_owner is None:
        crud.persist(db, commit=commit)
    else:
        _confirm_owner(db, new_owner, commit=commit)
        logger.info("item owner changed id=%s owner_id=%s", item_id, new_owner)
    return item
