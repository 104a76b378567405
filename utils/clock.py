from datetime import datetime, timezone


def utcnow() -> datetime:
    # bookings are stored as naive UTC timestamps
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso(dt_str: str) -> datetime:
    """
    Parse an ISO-8601 timestamp like "2026-01-20T18:00:00" or
    "2026-01-20T18:00:00Z". Aware values are converted to naive UTC.
    """
    value = datetime.fromisoformat(dt_str.strip().replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)
