"""Time helpers shared by all services."""
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalize a stored timestamp to an aware UTC datetime.
    
    Rows coming back from PostgreSQL carry datetimes; rows that went
    through JSON carry ISO-8601 strings, possibly with a trailing "Z".
    Naive values are assumed to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")
    
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
