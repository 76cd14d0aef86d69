"""Quiet-hours membership with timezone conversion and midnight wrap."""

from __future__ import annotations

from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

logger = structlog.get_logger(__name__)


def resolve_timezone(name: str) -> ZoneInfo:
    """Return the IANA zone *name*, falling back to UTC if it is unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_quiet_hours_timezone", timezone=name)
        return ZoneInfo("UTC")


def parse_time_of_day(value: str) -> time:
    """Parse ``"HH:MM"`` or ``"HH:MM:SS"`` into a :class:`datetime.time`."""
    return time.fromisoformat(value)


def in_window(local: time, start: time, end: time) -> bool:
    """Whether *local* lies in the window from *start* to *end*.

    Both bounds are inclusive. When ``end < start`` the window wraps
    midnight, e.g. 22:00–08:00 covers 22:00–24:00 and 00:00–08:00. A window
    with ``start == end`` is empty.
    """
    if start == end:
        return False
    if start < end:
        return start <= local <= end
    return local >= start or local <= end


def in_quiet_hours(
    now: datetime,
    start: time | None,
    end: time | None,
    timezone: str = "UTC",
) -> bool:
    """Whether *now* falls inside the quiet-hours window in *timezone*.

    Absence of either bound disables quiet hours. A naive *now* is taken to
    be UTC.
    """
    if start is None or end is None:
        return False
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    local = now.astimezone(resolve_timezone(timezone)).time().replace(tzinfo=None)
    return in_window(local, start, end)
