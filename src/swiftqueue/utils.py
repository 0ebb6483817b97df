import math
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo


def now() -> datetime:
    """Current UTC time truncated to millisecond precision (what BSON stores)."""
    value = datetime.now(UTC)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def day_bounds(timezone: str, at: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the [start, end) UTC range of the local calendar day containing `at`."""
    zone = ZoneInfo(timezone)
    local = (at or now()).astimezone(zone)
    start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    end = (start + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return start.astimezone(UTC), end.astimezone(UTC)


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up."""
    return math.floor(value + 0.5)
