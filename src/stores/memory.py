"""In-process store implementations.

The event store serialises its cooldown check-and-insert with an
``asyncio.Lock`` per (device, condition type), so concurrent reports for the
same device cannot both pass the cooldown check.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from src.alerting.exceptions import EventNotFoundError, RuleConflictError
from src.alerting.lifecycle import transition
from src.core.types import (
    AlertEvent,
    AlertRule,
    AlertStatus,
    Channel,
    ConditionType,
    DeliveryStatus,
    NotificationHistoryEntry,
    UserNotificationPreference,
    as_utc,
)
from src.notify.exceptions import HistoryEntryFinalizedError, HistoryEntryNotFoundError
from src.stores.base import EventStore, HistoryStore, PreferenceStore, RuleStore

logger = structlog.get_logger(__name__)

_EventKey = tuple[str, ConditionType]


class InMemoryRuleStore(RuleStore):
    """Rules keyed by id, with the one-enabled-rule-per-type constraint."""

    def __init__(self, rules: list[AlertRule] | None = None) -> None:
        self._rules: dict[str, AlertRule] = {}
        for rule in rules or []:
            self.add_rule(rule)

    def add_rule(self, rule: AlertRule) -> AlertRule:
        """Store *rule*, rejecting a second enabled rule for the same type."""
        if rule.enabled:
            for existing in self._rules.values():
                if (
                    existing.id != rule.id
                    and existing.enabled
                    and existing.user_id == rule.user_id
                    and existing.condition_type == rule.condition_type
                ):
                    raise RuleConflictError(
                        f"User {rule.user_id} already has an enabled"
                        f" {rule.condition_type} rule ({existing.id})"
                    )
        self._rules[rule.id] = rule
        return rule

    def rules_for_user(self, user_id: str) -> list[AlertRule]:
        return [r for r in self._rules.values() if r.user_id == user_id]

    async def get_enabled_rule(
        self, user_id: str, condition_type: ConditionType
    ) -> AlertRule | None:
        for rule in self._rules.values():
            if (
                rule.enabled
                and rule.user_id == user_id
                and rule.condition_type == condition_type
            ):
                return rule
        return None


class InMemoryEventStore(EventStore):
    """Alert events with a keyed lock around the cooldown check."""

    def __init__(self) -> None:
        self._events: dict[str, AlertEvent] = {}
        self._by_key: dict[_EventKey, list[str]] = defaultdict(list)
        self._locks: dict[_EventKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def events(self) -> list[AlertEvent]:
        """All stored events in insertion order."""
        return list(self._events.values())

    def _latest(self, key: _EventKey) -> AlertEvent | None:
        ids = self._by_key.get(key)
        if not ids:
            return None
        return max(
            (self._events[i] for i in ids),
            key=lambda e: e.triggered_at,
        )

    async def most_recent_event(
        self, device_id: str, condition_type: ConditionType
    ) -> AlertEvent | None:
        return self._latest((device_id, condition_type))

    async def insert_event_if_not_cooling_down(
        self, event: AlertEvent, cooldown: timedelta
    ) -> AlertEvent | None:
        key = (event.device_id, event.condition_type)
        async with self._locks[key]:
            latest = self._latest(key)
            if latest is not None and event.triggered_at - latest.triggered_at < cooldown:
                logger.debug(
                    "event_insert_suppressed",
                    device_id=event.device_id,
                    condition_type=event.condition_type,
                    last_triggered_at=latest.triggered_at.isoformat(),
                )
                return None
            self._events[event.id] = event
            self._by_key[key].append(event.id)
            return event

    async def get_event(self, event_id: str) -> AlertEvent | None:
        return self._events.get(event_id)

    async def update_status(
        self, event_id: str, status: AlertStatus, at: datetime | None = None
    ) -> AlertEvent:
        current = self._events.get(event_id)
        if current is None:
            raise EventNotFoundError(f"Alert event {event_id} not found")
        updated = transition(current, status, at)
        self._events[event_id] = updated
        return updated

    async def count_active(self, device_id: str) -> int:
        return sum(
            1
            for e in self._events.values()
            if e.device_id == device_id and e.status == AlertStatus.ACTIVE
        )


class InMemoryPreferenceStore(PreferenceStore):
    """Preferences keyed by user; unknown users get a default row on first read."""

    def __init__(
        self,
        default_factory: Callable[[str], UserNotificationPreference] | None = None,
    ) -> None:
        self._prefs: dict[str, UserNotificationPreference] = {}
        self._default_factory = default_factory or (
            lambda user_id: UserNotificationPreference(user_id=user_id)
        )

    def set_preference(self, pref: UserNotificationPreference) -> None:
        self._prefs[pref.user_id] = pref

    async def get_preference(self, user_id: str) -> UserNotificationPreference:
        pref = self._prefs.get(user_id)
        if pref is None:
            pref = self._default_factory(user_id)
            self._prefs[user_id] = pref
        return pref


class InMemoryHistoryStore(HistoryStore):
    """Append-only notification ledger."""

    def __init__(self) -> None:
        self._entries: dict[str, NotificationHistoryEntry] = {}

    @property
    def entries(self) -> list[NotificationHistoryEntry]:
        return list(self._entries.values())

    def add(self, entry: NotificationHistoryEntry) -> None:
        """Seed an entry directly (e.g. prior deliveries)."""
        self._entries[entry.id] = entry

    async def last_sent(self, user_id: str, channel: Channel) -> datetime | None:
        times = [
            e.sent_at
            for e in self._entries.values()
            if e.user_id == user_id
            and e.channel == channel
            and e.status == DeliveryStatus.SENT
            and e.sent_at is not None
        ]
        return max(times) if times else None

    async def insert_pending(
        self,
        alert_event_id: str,
        user_id: str,
        channel: Channel,
        recipient: str,
    ) -> str:
        entry = NotificationHistoryEntry(
            alert_event_id=alert_event_id,
            user_id=user_id,
            channel=channel,
            recipient=recipient,
        )
        self._entries[entry.id] = entry
        return entry.id

    async def insert_skipped(
        self,
        alert_event_id: str,
        user_id: str,
        channel: Channel,
        recipient: str,
        reason: str,
    ) -> str:
        entry = NotificationHistoryEntry(
            alert_event_id=alert_event_id,
            user_id=user_id,
            channel=channel,
            recipient=recipient,
            status=DeliveryStatus.SKIPPED,
            error=reason,
        )
        self._entries[entry.id] = entry
        return entry.id

    def _pending(self, entry_id: str) -> NotificationHistoryEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise HistoryEntryNotFoundError(f"History entry {entry_id} not found")
        if entry.status != DeliveryStatus.PENDING:
            raise HistoryEntryFinalizedError(
                f"History entry {entry_id} is already {entry.status}"
            )
        return entry

    async def mark_sent(self, entry_id: str, at: datetime) -> None:
        entry = self._pending(entry_id)
        self._entries[entry_id] = entry.model_copy(
            update={"status": DeliveryStatus.SENT, "sent_at": as_utc(at)}
        )

    async def mark_failed(self, entry_id: str, detail: str) -> None:
        entry = self._pending(entry_id)
        self._entries[entry_id] = entry.model_copy(
            update={"status": DeliveryStatus.FAILED, "error": detail}
        )

    async def get_entry(self, entry_id: str) -> NotificationHistoryEntry | None:
        return self._entries.get(entry_id)

    async def entries_for_event(self, alert_event_id: str) -> list[NotificationHistoryEntry]:
        return sorted(
            (e for e in self._entries.values() if e.alert_event_id == alert_event_id),
            key=lambda e: e.created_at,
        )
