"""Abstract store interfaces consumed by the alerting and notification core.

Concrete persistence lives outside this package; ``src.stores.memory``
provides in-process implementations used by tests and the simulator.
"""

from __future__ import annotations

import abc
from datetime import datetime, timedelta

from src.core.types import (
    AlertEvent,
    AlertRule,
    AlertStatus,
    Channel,
    ConditionType,
    NotificationHistoryEntry,
    UserNotificationPreference,
)


class RuleStore(abc.ABC):
    """Read access to alert rules."""

    @abc.abstractmethod
    async def get_enabled_rule(
        self, user_id: str, condition_type: ConditionType
    ) -> AlertRule | None:
        """Return the single enabled rule for (user, condition type), if any."""


class EventStore(abc.ABC):
    """Persistence for alert events and their lifecycle."""

    @abc.abstractmethod
    async def most_recent_event(
        self, device_id: str, condition_type: ConditionType
    ) -> AlertEvent | None:
        """Return the latest event for (device, condition type) regardless of status."""

    @abc.abstractmethod
    async def insert_event_if_not_cooling_down(
        self, event: AlertEvent, cooldown: timedelta
    ) -> AlertEvent | None:
        """Atomically insert *event* unless the key is still cooling down.

        The cooldown is measured from the ``triggered_at`` of the most recent
        event with the same (device, condition type), whatever its status.
        Returns the stored event, or None when suppressed.
        """

    @abc.abstractmethod
    async def get_event(self, event_id: str) -> AlertEvent | None:
        """Look up one event by id."""

    @abc.abstractmethod
    async def update_status(
        self, event_id: str, status: AlertStatus, at: datetime | None = None
    ) -> AlertEvent:
        """Apply a lifecycle transition and return the updated event."""

    @abc.abstractmethod
    async def count_active(self, device_id: str) -> int:
        """Number of events in ``active`` status for *device_id*."""


class PreferenceStore(abc.ABC):
    """Read access to per-user notification preferences."""

    @abc.abstractmethod
    async def get_preference(self, user_id: str) -> UserNotificationPreference:
        """Return the user's preference row (one always exists per user)."""


class HistoryStore(abc.ABC):
    """Append/update ledger of notification attempts."""

    @abc.abstractmethod
    async def last_sent(self, user_id: str, channel: Channel) -> datetime | None:
        """``sent_at`` of the user's most recent ``sent`` entry on *channel*."""

    @abc.abstractmethod
    async def insert_pending(
        self,
        alert_event_id: str,
        user_id: str,
        channel: Channel,
        recipient: str,
    ) -> str:
        """Create a ``pending`` entry and return its id."""

    @abc.abstractmethod
    async def insert_skipped(
        self,
        alert_event_id: str,
        user_id: str,
        channel: Channel,
        recipient: str,
        reason: str,
    ) -> str:
        """Create a terminal ``skipped`` entry and return its id."""

    @abc.abstractmethod
    async def mark_sent(self, entry_id: str, at: datetime) -> None:
        """Finalise a pending entry as ``sent``."""

    @abc.abstractmethod
    async def mark_failed(self, entry_id: str, detail: str) -> None:
        """Finalise a pending entry as ``failed`` with *detail*."""

    @abc.abstractmethod
    async def get_entry(self, entry_id: str) -> NotificationHistoryEntry | None:
        """Look up one entry by id."""

    @abc.abstractmethod
    async def entries_for_event(self, alert_event_id: str) -> list[NotificationHistoryEntry]:
        """All entries recorded for one alert event, oldest first."""
