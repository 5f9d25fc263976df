import datetime
from typing import Optional

_UNITS = ("KB", "MB", "GB", "TB")


def format_bytes(size: int) -> str:
    """Render a byte count the way file browsers do (decimal units)."""
    if size <= 0:
        return "Zero KB"
    if size < 1000:
        return f"{size} bytes"

    value = float(size)
    unit = "bytes"
    for unit in _UNITS:
        value /= 1000.0
        if value < 1000:
            break

    if value >= 100 or unit == "KB":
        return f"{value:.0f} {unit}"
    return f"{value:.1f} {unit}"


def format_relative_time(
    moment: datetime.datetime,
    now: Optional[datetime.datetime] = None,
) -> str:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    seconds = int((now - moment).total_seconds())

    if seconds < 0:
        return "in the future"
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60} min. ago"
    if seconds < 86400:
        return f"{seconds // 3600} hr. ago"
    days = seconds // 86400
    if days < 30:
        return f"{days} day ago" if days == 1 else f"{days} days ago"
    months = days // 30
    return f"{months} mo. ago"
