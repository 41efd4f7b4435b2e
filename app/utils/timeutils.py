from datetime import datetime, timezone
from typing import Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_iso(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def has_passed(moment: Union[str, datetime], now: Union[str, datetime]) -> bool:
    # the boundary instant itself counts as passed
    return parse_iso(now) >= parse_iso(moment)
