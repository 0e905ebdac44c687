"""UTC helpers. Timestamps are stored as naive UTC datetimes."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_utc(value: datetime) -> str:
    return to_naive_utc(value).strftime('%Y-%m-%dT%H:%M:%SZ')
