from pathlib import Path
import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

ROOT_DIR = Path(__file__).resolve().parent
DEFAULT_DB_PATH = Path("data") / "lender.db"

# seconds a writer waits on another writer's lock before "database is locked"
DB_TIMEOUT = float(os.getenv("APP_DB_TIMEOUT", "15"))


def resolve_db_path(value: str | os.PathLike | None = None, *, root_dir: Path = ROOT_DIR) -> Path:
    """APP_DB_PATH (or `value`) resolved against the project root; parent dir is created."""
    raw = value if value is not None else os.getenv("APP_DB_PATH")
    db_path = Path(raw).expanduser() if raw else DEFAULT_DB_PATH
    if not db_path.is_absolute():
        db_path = (root_dir / db_path).resolve()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def sqlite_url(db_path: Path) -> str:
    return f"sqlite:///{db_path.as_posix()}"


def make_engine(db_path: Path, *, timeout: float = DB_TIMEOUT) -> Engine:
    # one engine per process; sessions from several threads share it
    return create_engine(
        sqlite_url(db_path),
        connect_args={"check_same_thread": False, "timeout": timeout},
    )


DB_PATH = resolve_db_path()
DATABASE_URL = sqlite_url(DB_PATH)

engine = make_engine(DB_PATH)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

class Base(DeclarativeBase):
    pass
