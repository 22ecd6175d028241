#!/usr/bin/env python3
# scripts/check_consistency.py
import argparse
import sys
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from db import make_engine
from guard import find_inconsistencies


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Report items/loans that violate the availability or return-date invariants."
    )
    ap.add_argument("--db", default="data/lender.db", help="Path to SQLite DB (default: data/lender.db)")
    args = ap.parse_args()

    db_path = Path(args.db)
    if not db_path.exists():
        raise FileNotFoundError(db_path)

    engine = make_engine(db_path.resolve())
    session = sessionmaker(bind=engine)()
    try:
        problems = find_inconsistencies(session)
    finally:
        session.close()
        engine.dispose()

    for p in problems:
        detail = " ".join(f"{k}={v}" for k, v in p.items() if k != "kind")
        print(f"{p['kind']}: {detail}")

    if problems:
        print(f"{len(problems)} problem(s) found.")
        return 1
    print("OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
