"""Core module — config, types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import setup_logging
from src.core.types import (
    AlertEvent,
    AlertRule,
    AlertStatus,
    Candidate,
    Channel,
    ConditionType,
    DeliveryStatus,
    Device,
    DispatchOutcome,
    NotificationHistoryEntry,
    RenderedAlert,
    Severity,
    TelemetrySample,
    UserNotificationPreference,
)

__all__ = [
    "AlertEvent",
    "AlertRule",
    "AlertStatus",
    "Candidate",
    "Channel",
    "ConditionType",
    "DeliveryStatus",
    "Device",
    "DispatchOutcome",
    "NotificationHistoryEntry",
    "RenderedAlert",
    "Settings",
    "Severity",
    "TelemetrySample",
    "UserNotificationPreference",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
