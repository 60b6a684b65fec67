from datetime import datetime, timezone


def to_iso(value) -> str:
    # Supabase returns either an ISO string or a datetime; normalise to a string
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def parse_datetime(value) -> datetime:
    """Read a timestamptz column back as an aware datetime (UTC if naive)."""
    if isinstance(value, datetime):
        dt = value
    else:
        # Postgres may emit a trailing Z
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
