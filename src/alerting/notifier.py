"""Capability the alerting side uses to hand a raised event to notification delivery."""

from __future__ import annotations

import abc

from src.core.types import AlertEvent, Device


class NotificationSender(abc.ABC):
    """Anything that can notify a user about a raised alert event.

    Injected into :class:`~src.alerting.pipeline.AlertPipeline` at
    construction, so alerting never imports the notification package.
    """

    @abc.abstractmethod
    async def send_alert_notification(
        self, event: AlertEvent, owner_id: str, device: Device
    ) -> None:
        """Resolve channels for *owner_id* and deliver *event*."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""
