from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def older_than(value: datetime | None, age: timedelta, now: datetime | None = None) -> bool:
    if value is None:
        return False
    return as_aware(value) < (now or utcnow()) - age
