"""Notification preference resolution, channel senders and dispatch."""

from src.notify.channels import (
    ChannelSender,
    EmailSender,
    PushBackend,
    PushSender,
    WebhookSender,
)
from src.notify.dispatcher import ChannelDispatcher
from src.notify.factory import (
    create_alert_pipeline,
    create_notification_service,
    create_senders,
)
from src.notify.formatters import render_alert
from src.notify.quiet_hours import in_quiet_hours
from src.notify.resolver import PreferenceResolver, ResolutionResult
from src.notify.service import NotificationService

__all__ = [
    "ChannelDispatcher",
    "ChannelSender",
    "EmailSender",
    "NotificationService",
    "PreferenceResolver",
    "PushBackend",
    "PushSender",
    "ResolutionResult",
    "WebhookSender",
    "create_alert_pipeline",
    "create_notification_service",
    "create_senders",
    "in_quiet_hours",
    "render_alert",
]
