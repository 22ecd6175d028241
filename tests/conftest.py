import os
import tempfile
from pathlib import Path

import pytest

# ---- test DB path: must be set before db.py is first imported ----
_TMP_DIR = Path(tempfile.mkdtemp(prefix="lender_test_"))
os.environ["APP_DB_PATH"] = str(_TMP_DIR / "test_lender.db")

from fastapi.testclient import TestClient  # noqa: E402


@pytest.fixture(scope="session")
def app_module():
    import main

    return main


@pytest.fixture()
def client(app_module):
    with TestClient(app_module.app) as c:
        yield c


@pytest.fixture()
def session_factory(app_module):
    import db

    return db.SessionLocal


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db(app_module, db_session):
    # wipe every table before each test
    from sqlalchemy import delete
    from orm import ItemORM, LoanORM, MemberORM

    db_session.execute(delete(LoanORM))
    db_session.execute(delete(ItemORM))
    db_session.execute(delete(MemberORM))
    db_session.commit()
    yield
