"""Input validation for the lending core.

Every check collects all violations before failing, so a caller gets one
ValidationFailure listing each bad field. Nothing in here touches the
database; existence and uniqueness checks belong to the transitions.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, TypeAdapter, ValidationError

from errors import ValidationFailure
from models import BorrowIn, ItemIn, ItemUpdate, MemberIn
from timeutil import to_utc_naive

_DATETIME = TypeAdapter(datetime)


def is_valid_id(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True


def pydantic_errors(exc: ValidationError) -> list[dict[str, str]]:
    out: list[dict[str, str]] = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "__root__"
        out.append({"field": field, "message": err.get("msg", "invalid value")})
    return out


def _parse(model: type[BaseModel], data: dict[str, Any]) -> tuple[Optional[BaseModel], list[dict[str, str]]]:
    try:
        return model.model_validate(data), []
    except ValidationError as exc:
        return None, pydantic_errors(exc)


def _check_id(errors: list[dict[str, str]], field: str, value: Any) -> None:
    # a missing/mistyped value is already reported by pydantic
    if any(e["field"] == field for e in errors):
        return
    if not is_valid_id(value):
        errors.append({"field": field, "message": f"{field} must be a valid identifier"})


def validate_member(
    *,
    name: Any,
    email: Any,
    phone: Any = None,
    student_id: Any = None,
) -> MemberIn:
    body, errors = _parse(
        MemberIn,
        {"name": name, "email": email, "phone": phone, "student_id": student_id},
    )
    if errors:
        raise ValidationFailure(errors)
    return body  # type: ignore[return-value]


def validate_item(
    *,
    title: Any,
    type: Any,
    owner_id: Any,
    description: Any = None,
    author: Any = None,
    isbn: Any = None,
) -> ItemIn:
    body, errors = _parse(
        ItemIn,
        {
            "title": title,
            "type": type,
            "owner_id": owner_id,
            "description": description,
            "author": author,
            "isbn": isbn,
        },
    )
    _check_id(errors, "owner_id", owner_id)
    if errors:
        raise ValidationFailure(errors)
    return body  # type: ignore[return-value]


def validate_item_update(changes: dict[str, Any]) -> dict[str, Any]:
    """Validate a partial item update; returns only the fields that were set."""
    errors: list[dict[str, str]] = []
    if "available" in changes:
        errors.append({"field": "available", "message": "available is managed by borrow/return"})

    allowed = set(ItemUpdate.model_fields)
    for field in sorted(set(changes) - allowed - {"available"}):
        errors.append({"field": field, "message": "unknown field"})

    known = {k: v for k, v in changes.items() if k in allowed}
    body, parse_errors = _parse(ItemUpdate, known)
    errors.extend(parse_errors)

    for field in ("title", "type", "owner_id"):
        if field in known and known[field] is None:
            errors.append({"field": field, "message": f"{field} cannot be null"})
    if known.get("owner_id") is not None:
        _check_id(errors, "owner_id", known["owner_id"])

    if errors:
        raise ValidationFailure(errors)
    return body.model_dump(exclude_unset=True)  # type: ignore[union-attr]


def validate_borrow(
    *,
    item_id: Any,
    borrower_member_id: Any,
    due_date: Any,
    now: datetime,
) -> BorrowIn:
    errors: list[dict[str, str]] = []
    for field, value in (("item_id", item_id), ("borrower_member_id", borrower_member_id)):
        if value is None or value == "":
            errors.append({"field": field, "message": f"{field} is required"})
        elif not is_valid_id(value):
            errors.append({"field": field, "message": f"{field} must be a valid identifier"})

    due: Optional[datetime] = None
    if due_date is None or due_date == "":
        errors.append({"field": "due_date", "message": "due_date is required"})
    else:
        try:
            due = to_utc_naive(_DATETIME.validate_python(due_date))
        except ValidationError:
            errors.append({"field": "due_date", "message": "Due date must be a valid ISO 8601 timestamp"})

    if due is not None and due <= now:
        errors.append({"field": "due_date", "message": "Due date must be in the future"})

    if errors:
        raise ValidationFailure(errors)
    return BorrowIn(item_id=item_id, borrower_member_id=borrower_member_id, due_date=due)


def validate_loan_id(loan_id: Any) -> str:
    if not is_valid_id(loan_id):
        raise ValidationFailure([{"field": "loan_id", "message": "loan_id must be a valid identifier"}])
    return loan_id


def parse_optional_timestamp(field: str, value: Any) -> Optional[datetime]:
    """Parse a query-string timestamp; blank means absent."""
    if value is None or value == "":
        return None
    try:
        return to_utc_naive(_DATETIME.validate_python(value))
    except ValidationError:
        raise ValidationFailure(
            [{"field": field, "message": f"{field} must be a valid ISO 8601 timestamp"}]
        ) from None
