"""Pure notification gate functions — each returns a GateVerdict."""

from __future__ import annotations

from datetime import datetime, timedelta

from src.core.types import (
    Channel,
    GateRejection,
    GateVerdict,
    Severity,
    UserNotificationPreference,
)
from src.notify.quiet_hours import in_quiet_hours


def check_enabled(pref: UserNotificationPreference) -> GateVerdict:
    """Reject if the user switched notifications off globally."""
    if not pref.enabled:
        return GateVerdict(
            approved=False,
            reason=GateRejection.NOTIFICATIONS_DISABLED,
            detail="Notifications disabled for user",
        )
    return GateVerdict(approved=True)


def check_severity(pref: UserNotificationPreference, severity: Severity) -> GateVerdict:
    """Reject if the user does not want alerts of this severity."""
    if not pref.admits(severity):
        return GateVerdict(
            approved=False,
            reason=GateRejection.SEVERITY_MUTED,
            detail=f"notify_{severity.value} is off",
        )
    return GateVerdict(approved=True)


def check_quiet_hours(pref: UserNotificationPreference, now: datetime) -> GateVerdict:
    """Reject if *now* is inside the user's quiet hours."""
    if in_quiet_hours(
        now,
        pref.quiet_hours_start,
        pref.quiet_hours_end,
        pref.quiet_hours_timezone,
    ):
        return GateVerdict(
            approved=False,
            reason=GateRejection.QUIET_HOURS,
            detail=(
                f"Quiet hours {pref.quiet_hours_start}-{pref.quiet_hours_end}"
                f" {pref.quiet_hours_timezone}"
            ),
        )
    return GateVerdict(approved=True)


def check_channel_enabled(pref: UserNotificationPreference, channel: Channel) -> GateVerdict:
    """Reject if the channel's own ``enabled`` bit is off or it has no config."""
    if not pref.channel_enabled(channel):
        return GateVerdict(
            approved=False,
            reason=GateRejection.CHANNEL_DISABLED,
            detail=f"{channel.value} disabled",
        )
    return GateVerdict(approved=True)


def check_frequency(
    last_sent: datetime | None,
    now: datetime,
    min_interval: timedelta,
) -> GateVerdict:
    """Reject if the channel delivered to this user less than *min_interval* ago."""
    if last_sent is None:
        return GateVerdict(approved=True)
    elapsed = now - last_sent
    if elapsed < min_interval:
        return GateVerdict(
            approved=False,
            reason=GateRejection.RATE_LIMITED,
            detail=(
                f"Last sent {int(elapsed.total_seconds())}s ago,"
                f" minimum interval {int(min_interval.total_seconds())}s"
            ),
        )
    return GateVerdict(approved=True)
