from datetime import datetime, timedelta, timezone

ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    # SQLite DateTime columns round-trip naive values, so everything is naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
