from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from errors import ValidationFailure
from validation import (
    is_valid_id,
    validate_borrow,
    validate_item,
    validate_item_update,
    validate_loan_id,
    validate_member,
)

NOW = datetime(2030, 1, 1, 12, 0, 0)


def test_member_reports_every_bad_field_at_once():
    with pytest.raises(ValidationFailure) as ei:
        validate_member(name=" A ", email="not-an-email", phone="call me")

    assert set(ei.value.fields) == {"name", "email", "phone"}
    assert ei.value.kind == "validation"


def test_member_normalizes_email_and_blank_phone():
    body = validate_member(name="  Alice Smith ", email="Alice@Example.COM", phone="", student_id=" ")
    assert body.name == "Alice Smith"
    assert body.email == "alice@example.com"
    assert body.phone is None
    assert body.student_id is None


def test_member_phone_accepts_separators():
    body = validate_member(name="Bob", email="bob@example.com", phone="+1 (555) 010-2030")
    assert body.phone == "+1 (555) 010-2030"


def test_member_name_too_long():
    with pytest.raises(ValidationFailure) as ei:
        validate_member(name="x" * 101, email="long@example.com")
    assert ei.value.fields == ["name"]


def test_item_reports_every_bad_field_at_once():
    with pytest.raises(ValidationFailure) as ei:
        validate_item(title="   ", type="vehicle", owner_id="abc", description="d" * 501)

    assert set(ei.value.fields) == {"title", "type", "owner_id", "description"}


def test_item_missing_owner_is_reported_once():
    with pytest.raises(ValidationFailure) as ei:
        validate_item(title="Drill", type="tool", owner_id=None)
    assert ei.value.fields == ["owner_id"]


def test_item_book_fields():
    body = validate_item(
        title="Dune",
        type="book",
        owner_id=str(uuid4()),
        author="Frank Herbert",
        isbn="9780441172719",
    )
    assert body.author == "Frank Herbert"
    assert body.isbn == "9780441172719"

    with pytest.raises(ValidationFailure) as ei:
        validate_item(title="Dune", type="book", owner_id=str(uuid4()), isbn="9" * 21)
    assert ei.value.fields == ["isbn"]


def test_item_update_rejects_available_and_unknown_fields():
    with pytest.raises(ValidationFailure) as ei:
        validate_item_update({"available": True, "colour": "red", "title": ""})

    assert set(ei.value.fields) == {"available", "colour", "title"}


def test_item_update_keeps_only_set_fields():
    owner = str(uuid4())
    data = validate_item_update({"owner_id": owner, "description": "  spare  "})
    assert data == {"owner_id": owner, "description": "spare"}


def test_item_update_blank_optional_fields_clear_to_none():
    data = validate_item_update({"description": "", "author": "   ", "isbn": ""})
    assert data == {"description": None, "author": None, "isbn": None}

    created = validate_item(title="Saw", type="tool", owner_id=str(uuid4()), description="")
    assert created.description is None


def test_borrow_past_due_date_rejected():
    with pytest.raises(ValidationFailure) as ei:
        validate_borrow(
            item_id=str(uuid4()),
            borrower_member_id=str(uuid4()),
            due_date=NOW - timedelta(days=1),
            now=NOW,
        )
    assert ei.value.fields == ["due_date"]
    assert "future" in ei.value.errors[0]["message"]


def test_borrow_due_date_equal_to_now_rejected():
    with pytest.raises(ValidationFailure):
        validate_borrow(
            item_id=str(uuid4()),
            borrower_member_id=str(uuid4()),
            due_date=NOW,
            now=NOW,
        )


def test_borrow_collects_all_errors():
    with pytest.raises(ValidationFailure) as ei:
        validate_borrow(item_id="nope", borrower_member_id=None, due_date="tomorrow-ish", now=NOW)

    assert set(ei.value.fields) == {"item_id", "borrower_member_id", "due_date"}


def test_borrow_parses_iso_string_to_naive_utc():
    body = validate_borrow(
        item_id=str(uuid4()),
        borrower_member_id=str(uuid4()),
        due_date="2030-01-08T14:00:00+02:00",
        now=NOW,
    )
    assert body.due_date == datetime(2030, 1, 8, 12, 0, 0)
    assert body.due_date.tzinfo is None


def test_borrow_aware_datetime_compared_in_utc():
    # 13:30 at +02:00 is 11:30 UTC, half an hour before NOW
    due = datetime(2030, 1, 1, 13, 30, tzinfo=timezone(timedelta(hours=2)))
    with pytest.raises(ValidationFailure):
        validate_borrow(
            item_id=str(uuid4()),
            borrower_member_id=str(uuid4()),
            due_date=due,
            now=NOW,
        )


def test_ids():
    assert is_valid_id(str(uuid4()))
    assert not is_valid_id("")
    assert not is_valid_id("123")
    assert not is_valid_id(None)

    with pytest.raises(ValidationFailure) as ei:
        validate_loan_id("xyz")
    assert ei.value.fields == ["loan_id"]
