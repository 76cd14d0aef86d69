"""Domain types for alert evaluation and notification dispatch."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, time, timedelta
from enum import StrEnum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, Field

from src.core.config import DeviceThresholds


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Read a naive datetime as UTC; aware values pass through unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# Timestamps entering the models are always timezone-aware.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class Severity(StrEnum):
    """Alert severity level."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ConditionType(StrEnum):
    """Category of threshold being evaluated."""

    LOW_BATTERY = "low_battery"
    CRITICAL_BATTERY = "critical_battery"
    HIGH_TEMPERATURE = "high_temperature"
    DEVICE_OFFLINE = "device_offline"
    RAPID_DRAIN = "rapid_drain"


class AlertStatus(StrEnum):
    """Alert lifecycle status."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class Channel(StrEnum):
    """Notification delivery channel."""

    EMAIL = "email"
    WEBHOOK = "webhook"
    PUSH = "push"


class DeliveryStatus(StrEnum):
    """Status of one notification history entry."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


# ── Telemetry ────────────────────────────────────────────────────


class TelemetrySample(BaseModel):
    """One telemetry report from a device."""

    device_id: str
    battery_level: float | None = None
    temperature: float | None = None
    is_charging: bool = False
    recorded_at: UtcDatetime | None = None


class Device(BaseModel):
    """The slice of device state the evaluator needs."""

    id: str
    owner_id: str | None = None
    name: str = ""
    last_seen_at: UtcDatetime | None = None
    last_battery_level: float | None = None
    last_battery_at: UtcDatetime | None = None
    thresholds: DeviceThresholds | None = None


# ── Alerting ─────────────────────────────────────────────────────


class AlertRule(BaseModel):
    """A user's rule for one condition type."""

    id: str = Field(default_factory=new_id)
    user_id: str
    condition_type: ConditionType
    name: str = ""
    severity: Severity
    threshold: float = 0.0
    cooldown: timedelta = timedelta(minutes=30)
    enabled: bool = True


class AlertEvent(BaseModel):
    """One raised occurrence of a condition on a device."""

    id: str = Field(default_factory=new_id)
    device_id: str
    rule_id: str
    condition_type: ConditionType
    severity: Severity
    status: AlertStatus = AlertStatus.ACTIVE
    message: str = ""
    value: float = 0.0
    threshold: float = 0.0
    triggered_at: UtcDatetime = Field(default_factory=utcnow)
    acknowledged_at: UtcDatetime | None = None
    resolved_at: UtcDatetime | None = None


# ── Notifications ────────────────────────────────────────────────


class UserNotificationPreference(BaseModel):
    """Per-user notification configuration.

    ``channel_configs`` holds one opaque blob per channel. Each blob carries
    its own ``enabled`` bit; the rest of its shape belongs to the channel's
    sender.
    """

    user_id: str
    enabled: bool = True
    channel_configs: dict[Channel, dict[str, Any]] = Field(default_factory=dict)
    notify_info: bool = False
    notify_warning: bool = True
    notify_critical: bool = True
    quiet_hours_start: time | None = None
    quiet_hours_end: time | None = None
    quiet_hours_timezone: str = "UTC"
    min_notification_interval: timedelta = timedelta(minutes=5)

    def channel_config(self, channel: Channel) -> dict[str, Any] | None:
        return self.channel_configs.get(channel)

    def channel_enabled(self, channel: Channel) -> bool:
        config = self.channel_configs.get(channel)
        return bool(config) and bool(config.get("enabled", False))

    def admits(self, severity: Severity) -> bool:
        """Whether notifications of *severity* are wanted at all."""
        if severity == Severity.INFO:
            return self.notify_info
        if severity == Severity.WARNING:
            return self.notify_warning
        return self.notify_critical


class NotificationHistoryEntry(BaseModel):
    """Audit record of one delivery attempt on one channel for one event."""

    id: str = Field(default_factory=new_id)
    alert_event_id: str
    user_id: str
    channel: Channel
    recipient: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    error: str | None = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    sent_at: UtcDatetime | None = None


class Candidate(BaseModel):
    """A (channel, recipient) pair cleared to fire."""

    channel: Channel
    recipient: str


class RenderedAlert(BaseModel):
    """Channel-neutral notification content."""

    severity: Severity
    title: str
    body: str = ""
    fields: dict[str, str] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)


class DispatchOutcome(BaseModel):
    """Result of one per-channel dispatch attempt."""

    channel: Channel
    recipient: str
    entry_id: str
    status: DeliveryStatus
    error: str | None = None


# ── Gates ────────────────────────────────────────────────────────


class GateRejection(StrEnum):
    """Why a notification gate rejected an event or channel."""

    NOTIFICATIONS_DISABLED = "notifications_disabled"
    SEVERITY_MUTED = "severity_muted"
    QUIET_HOURS = "quiet_hours"
    RATE_LIMITED = "rate_limited"
    CHANNEL_DISABLED = "channel_disabled"
    NO_SENDER = "no_sender"
    NO_RECIPIENT = "no_recipient"


class GateVerdict(BaseModel):
    """Outcome of one notification gate check."""

    approved: bool = True
    reason: GateRejection | None = None
    detail: str = ""
