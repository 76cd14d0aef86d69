"""Convenience factory for wiring the alerting and notification stack."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from src.alerting.evaluator import AlertEvaluator
from src.alerting.pipeline import AlertPipeline
from src.core.config import NotificationsConfig, Settings
from src.core.types import Channel, UserNotificationPreference, utcnow
from src.notify.channels import (
    ChannelSender,
    EmailSender,
    PushBackend,
    PushSender,
    WebhookSender,
)
from src.notify.dispatcher import ChannelDispatcher
from src.notify.resolver import PreferenceResolver
from src.notify.service import NotificationService
from src.stores.base import EventStore, HistoryStore, PreferenceStore, RuleStore


def create_senders(
    config: NotificationsConfig,
    push_backend: PushBackend | None = None,
) -> dict[Channel, ChannelSender]:
    """Build the enabled channel senders from config.

    Push needs an injected backend; it is skipped without one.
    """
    senders: dict[Channel, ChannelSender] = {}

    if config.email.enabled:
        senders[Channel.EMAIL] = EmailSender(config.email)

    if config.webhook.enabled:
        senders[Channel.WEBHOOK] = WebhookSender(config.webhook)

    if config.push.enabled and push_backend is not None:
        senders[Channel.PUSH] = PushSender(push_backend)

    return senders


def default_preference_factory(
    config: NotificationsConfig,
) -> Callable[[str], UserNotificationPreference]:
    """Factory for the preference row a preference store creates for a new user."""
    interval = timedelta(minutes=config.default_min_interval_minutes)

    def _factory(user_id: str) -> UserNotificationPreference:
        return UserNotificationPreference(
            user_id=user_id,
            min_notification_interval=interval,
        )

    return _factory


def create_notification_service(
    config: NotificationsConfig,
    preferences: PreferenceStore,
    history: HistoryStore,
    senders: dict[Channel, ChannelSender] | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> NotificationService:
    """Build resolver + dispatcher + service sharing one sender registry."""
    registry = senders if senders is not None else create_senders(config)
    resolver = PreferenceResolver(
        preferences=preferences,
        history=history,
        senders=registry,
        clock=clock,
    )
    dispatcher = ChannelDispatcher(
        senders=registry,
        history=history,
        send_timeout_secs=config.send_timeout_secs,
        clock=clock,
    )
    return NotificationService(
        resolver=resolver,
        dispatcher=dispatcher,
        history=history,
        audit_skipped=config.audit_skipped,
    )


def create_alert_pipeline(
    settings: Settings,
    rules: RuleStore,
    events: EventStore,
    preferences: PreferenceStore,
    history: HistoryStore,
    senders: dict[Channel, ChannelSender] | None = None,
    push_backend: PushBackend | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> AlertPipeline:
    """Wire evaluator and notification service into an AlertPipeline.

    Returns:
        The pipeline; call ``close()`` on shutdown to drain and release senders.
    """
    if senders is None:
        senders = create_senders(settings.notifications, push_backend)

    evaluator = AlertEvaluator(
        rules=rules,
        events=events,
        config=settings.alerting,
        clock=clock,
    )
    service = create_notification_service(
        settings.notifications,
        preferences=preferences,
        history=history,
        senders=senders,
        clock=clock,
    )
    return AlertPipeline(evaluator, notifier=service)
