from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Naive UTC now; the file-backed store keeps timestamps without offsets."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw.astimezone(timezone.utc).replace(tzinfo=None) if raw.tzinfo else raw
    try:
        parsed = datetime.fromisoformat(str(raw))
    except ValueError:
        try:
            parsed = datetime.strptime(str(raw), "%Y-%m-%d %H:%M:%S")
        except ValueError:
            return None
    if parsed.tzinfo:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_datetime(value: Optional[datetime]) -> str:
    # fixed microsecond precision keeps stored timestamps lexically sortable
    if not value:
        return ""
    return value.isoformat(sep=" ", timespec="microseconds")
