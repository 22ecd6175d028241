from datetime import datetime, timedelta

import pytest

import catalog
import crud
import lifecycle
import reports

T0 = datetime(2030, 1, 1, 12, 0, 0)


@pytest.fixture()
def library(db_session):
    """Two owners, two borrowers, three items; nothing lent yet."""
    ann = catalog.create_member(db_session, name="Ann Owner", email="ann@example.com")
    ben = catalog.create_member(db_session, name="Ben Owner", email="ben@example.com")
    cat = catalog.create_member(db_session, name="Cat Borrower", email="cat@example.com")
    dan = catalog.create_member(db_session, name="Dan Borrower", email="dan@example.com")
    book = catalog.create_item(
        db_session, title="Dune", type="book", owner_id=ann.id, author="Frank Herbert"
    )
    drill = catalog.create_item(db_session, title="Drill", type="tool", owner_id=ann.id)
    tent = catalog.create_item(db_session, title="Tent", type="equipment", owner_id=ben.id)
    return {
        "ann": ann, "ben": ben, "cat": cat, "dan": dan,
        "book": book, "drill": drill, "tent": tent,
    }


def _lend(db, item, borrower, *, at=T0, days=7):
    return lifecycle.borrow(
        db,
        item_id=item.id,
        borrower_member_id=borrower.id,
        due_date=at + timedelta(days=days),
        now=at,
    )


def test_loan_becomes_overdue_on_query(db_session, library):
    loan = _lend(db_session, library["drill"], library["cat"], days=1)

    assert reports.list_overdue(db_session, now=T0 + timedelta(hours=12)) == []

    overdue = reports.list_overdue(db_session, now=T0 + timedelta(days=2))
    assert [v.id for v in overdue] == [loan.id]
    assert overdue[0].status == "overdue"
    assert overdue[0].item.title == "Drill"
    assert overdue[0].borrower.name == "Cat Borrower"
    assert crud.get_loan(db_session, loan.id).status == "overdue"


def test_overdue_read_without_persist_has_no_side_effect(db_session, library):
    loan = _lend(db_session, library["drill"], library["cat"], days=1)

    views = reports.list_overdue(db_session, now=T0 + timedelta(days=2), persist=False)
    assert [v.id for v in views] == [loan.id]
    assert crud.get_loan(db_session, loan.id).status == "active"


def test_overdue_sorted_by_due_date(db_session, library):
    late = _lend(db_session, library["tent"], library["cat"], days=3)
    later = _lend(db_session, library["drill"], library["dan"], days=1)

    views = reports.list_overdue(db_session, now=T0 + timedelta(days=10))
    assert [v.id for v in views] == [later.id, late.id]


def test_notifications(db_session, library):
    _lend(db_session, library["book"], library["dan"], days=1)

    empty = reports.notifications(db_session, now=T0 + timedelta(hours=1))
    assert empty.count == 0
    assert empty.has_overdue is False

    feed = reports.notifications(db_session, now=T0 + timedelta(days=4, hours=1))
    assert feed.count == 1
    assert feed.has_overdue is True
    note = feed.data[0]
    assert note.type == "overdue"
    assert note.message == 'Item "Dune" is overdue. Borrower: Dan Borrower'
    assert note.days_overdue == 3
    assert note.borrower_id == library["dan"].id


def test_borrowed_by_lists_open_loans_only(db_session, library):
    returned = _lend(db_session, library["book"], library["cat"])
    lifecycle.return_loan(db_session, returned.id, now=T0 + timedelta(days=1))
    open_loan = _lend(db_session, library["tent"], library["cat"])

    views = reports.list_borrowed_by(db_session, library["cat"].id, now=T0 + timedelta(days=1))
    assert [v.id for v in views] == [open_loan.id]


def test_available_items(db_session, library):
    _lend(db_session, library["tent"], library["cat"])
    titles = {i.title for i in reports.list_available_items(db_session)}
    assert titles == {"Dune", "Drill"}


def test_history_and_current_borrows_by_range(db_session, library):
    first = _lend(db_session, library["book"], library["cat"], at=T0)
    lifecycle.return_loan(db_session, first.id, now=T0 + timedelta(days=1))
    second = _lend(db_session, library["drill"], library["dan"], at=T0 + timedelta(days=5))
    now = T0 + timedelta(days=6)

    everything = reports.loan_history(db_session, now=now)
    assert {v.id for v in everything} == {first.id, second.id}

    early = reports.loan_history(db_session, end=T0 + timedelta(days=2), now=now)
    assert [v.id for v in early] == [first.id]

    returned = reports.loan_history(db_session, status="returned", now=now)
    assert [v.id for v in returned] == [first.id]

    current = reports.current_borrows(db_session, now=now)
    assert [v.id for v in current] == [second.id]

    nothing = reports.current_borrows(db_session, start=T0 + timedelta(days=6), now=now)
    assert nothing == []


def test_dashboard_stats(db_session, library):
    first = _lend(db_session, library["book"], library["cat"])
    lifecycle.return_loan(db_session, first.id, now=T0 + timedelta(days=1))
    _lend(db_session, library["book"], library["dan"], at=T0 + timedelta(days=1), days=1)
    _lend(db_session, library["tent"], library["cat"], at=T0 + timedelta(days=1), days=30)

    stats = reports.dashboard_stats(db_session, now=T0 + timedelta(days=5))

    overall = stats.overall
    assert overall.total_members == 4
    assert overall.total_items == 3
    assert overall.available_items == 1
    assert overall.borrowed_items == 2
    assert overall.total_loans == 3
    assert overall.returned_loans == 1
    assert overall.overdue_loans == 1
    # active_loans counts every open loan, overdue included
    assert overall.active_loans == 2

    top_item = stats.most_borrowed_items[0]
    assert top_item.title == "Dune"
    assert top_item.author == "Frank Herbert"
    assert top_item.borrow_count == 2
    assert top_item.active_borrows == 1

    by_member = {m.name: m for m in stats.borrow_counts_by_member}
    assert by_member["Cat Borrower"].borrow_count == 2
    assert by_member["Cat Borrower"].returned_count == 1
    assert by_member["Dan Borrower"].active_borrows == 1


def test_list_loan_views_filters(db_session, library):
    a = _lend(db_session, library["book"], library["cat"])
    b = _lend(db_session, library["tent"], library["dan"])
    now = T0 + timedelta(days=1)

    by_item = reports.list_loan_views(db_session, item_id=library["book"].id, now=now)
    assert [v.id for v in by_item] == [a.id]

    by_borrower = reports.list_loan_views(db_session, borrower_member_id=library["dan"].id, now=now)
    assert [v.id for v in by_borrower] == [b.id]

    assert reports.list_loan_views(db_session, status="returned", now=now) == []
