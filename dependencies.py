from collections.abc import Generator

from sqlalchemy.orm import Session

import db as database


def get_db() -> Generator[Session, None, None]:
    # looked up at call time so a reconfigured SessionLocal is picked up
    session = database.SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
