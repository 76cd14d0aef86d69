"""Tests for the in-memory stores."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from src.alerting.exceptions import (
    EventNotFoundError,
    InvalidTransitionError,
    RuleConflictError,
)
from src.core.types import (
    AlertEvent,
    AlertRule,
    AlertStatus,
    Channel,
    ConditionType,
    DeliveryStatus,
    Severity,
    UserNotificationPreference,
)
from src.notify.exceptions import HistoryEntryFinalizedError, HistoryEntryNotFoundError
from src.stores.memory import (
    InMemoryEventStore,
    InMemoryHistoryStore,
    InMemoryPreferenceStore,
    InMemoryRuleStore,
)

T0 = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)
COOLDOWN = timedelta(minutes=15)


def _rule(**kw: object) -> AlertRule:
    defaults: dict[str, object] = {
        "user_id": "u1",
        "condition_type": ConditionType.LOW_BATTERY,
        "severity": Severity.WARNING,
        "threshold": 20,
    }
    defaults.update(kw)
    return AlertRule(**defaults)  # type: ignore[arg-type]


def _event(at: datetime = T0, **kw: object) -> AlertEvent:
    defaults: dict[str, object] = {
        "device_id": "d1",
        "rule_id": "r1",
        "condition_type": ConditionType.LOW_BATTERY,
        "severity": Severity.WARNING,
        "triggered_at": at,
    }
    defaults.update(kw)
    return AlertEvent(**defaults)  # type: ignore[arg-type]


# ── Rules ───────────────────────────────────────────────────────


class TestRuleStore:
    async def test_get_enabled_rule(self) -> None:
        rule = _rule()
        store = InMemoryRuleStore([rule])
        assert await store.get_enabled_rule("u1", ConditionType.LOW_BATTERY) == rule
        assert await store.get_enabled_rule("u1", ConditionType.HIGH_TEMPERATURE) is None
        assert await store.get_enabled_rule("u2", ConditionType.LOW_BATTERY) is None

    def test_second_enabled_rule_rejected(self) -> None:
        store = InMemoryRuleStore([_rule()])
        with pytest.raises(RuleConflictError):
            store.add_rule(_rule())

    def test_disabled_duplicate_allowed(self) -> None:
        store = InMemoryRuleStore([_rule()])
        store.add_rule(_rule(enabled=False))
        assert len(store.rules_for_user("u1")) == 2

    def test_replacing_same_rule_allowed(self) -> None:
        rule = _rule()
        store = InMemoryRuleStore([rule])
        store.add_rule(rule.model_copy(update={"threshold": 30}))
        assert store.rules_for_user("u1")[0].threshold == 30

    async def test_disabled_rule_not_returned(self) -> None:
        store = InMemoryRuleStore([_rule(enabled=False)])
        assert await store.get_enabled_rule("u1", ConditionType.LOW_BATTERY) is None


# ── Events ──────────────────────────────────────────────────────


class TestEventStore:
    async def test_insert_then_cooldown(self) -> None:
        store = InMemoryEventStore()
        first = await store.insert_event_if_not_cooling_down(_event(), COOLDOWN)
        assert first is not None
        suppressed = await store.insert_event_if_not_cooling_down(
            _event(T0 + timedelta(minutes=14)), COOLDOWN
        )
        assert suppressed is None
        again = await store.insert_event_if_not_cooling_down(
            _event(T0 + timedelta(minutes=15)), COOLDOWN
        )
        assert again is not None
        assert len(store.events) == 2

    async def test_cooldown_per_condition(self) -> None:
        store = InMemoryEventStore()
        await store.insert_event_if_not_cooling_down(_event(), COOLDOWN)
        other = await store.insert_event_if_not_cooling_down(
            _event(condition_type=ConditionType.HIGH_TEMPERATURE), COOLDOWN
        )
        assert other is not None

    async def test_most_recent_event(self) -> None:
        store = InMemoryEventStore()
        await store.insert_event_if_not_cooling_down(_event(), COOLDOWN)
        later = await store.insert_event_if_not_cooling_down(
            _event(T0 + timedelta(hours=1)), COOLDOWN
        )
        latest = await store.most_recent_event("d1", ConditionType.LOW_BATTERY)
        assert latest == later
        assert await store.most_recent_event("d2", ConditionType.LOW_BATTERY) is None

    async def test_concurrent_inserts_single_winner(self) -> None:
        store = InMemoryEventStore()
        results = await asyncio.gather(
            *(store.insert_event_if_not_cooling_down(_event(), COOLDOWN) for _ in range(10))
        )
        assert sum(1 for r in results if r is not None) == 1

    async def test_update_status(self) -> None:
        store = InMemoryEventStore()
        event = await store.insert_event_if_not_cooling_down(_event(), COOLDOWN)
        assert event is not None
        acked = await store.update_status(event.id, AlertStatus.ACKNOWLEDGED, T0)
        assert acked.acknowledged_at == T0
        stored = await store.get_event(event.id)
        assert stored is not None
        assert stored.status == AlertStatus.ACKNOWLEDGED

    async def test_update_status_invalid(self) -> None:
        store = InMemoryEventStore()
        event = await store.insert_event_if_not_cooling_down(_event(), COOLDOWN)
        assert event is not None
        await store.update_status(event.id, AlertStatus.RESOLVED)
        with pytest.raises(InvalidTransitionError):
            await store.update_status(event.id, AlertStatus.ACKNOWLEDGED)

    async def test_update_status_missing(self) -> None:
        with pytest.raises(EventNotFoundError):
            await InMemoryEventStore().update_status("nope", AlertStatus.RESOLVED)

    async def test_count_active(self) -> None:
        store = InMemoryEventStore()
        first = await store.insert_event_if_not_cooling_down(_event(), COOLDOWN)
        await store.insert_event_if_not_cooling_down(
            _event(condition_type=ConditionType.HIGH_TEMPERATURE), COOLDOWN
        )
        assert first is not None
        assert await store.count_active("d1") == 2
        await store.update_status(first.id, AlertStatus.RESOLVED)
        assert await store.count_active("d1") == 1
        assert await store.count_active("d2") == 0


# ── Preferences ─────────────────────────────────────────────────


class TestPreferenceStore:
    async def test_default_created_on_first_read(self) -> None:
        store = InMemoryPreferenceStore()
        pref = await store.get_preference("u1")
        assert pref.user_id == "u1"
        assert pref.enabled is True
        assert await store.get_preference("u1") is pref

    async def test_set_preference(self) -> None:
        store = InMemoryPreferenceStore()
        store.set_preference(UserNotificationPreference(user_id="u1", enabled=False))
        assert (await store.get_preference("u1")).enabled is False


# ── History ─────────────────────────────────────────────────────


class TestHistoryStore:
    async def test_pending_to_sent(self) -> None:
        store = InMemoryHistoryStore()
        entry_id = await store.insert_pending("a1", "u1", Channel.EMAIL, "x@y.io")
        entry = await store.get_entry(entry_id)
        assert entry is not None
        assert entry.status == DeliveryStatus.PENDING

        await store.mark_sent(entry_id, T0)
        entry = await store.get_entry(entry_id)
        assert entry is not None
        assert entry.status == DeliveryStatus.SENT
        assert entry.sent_at == T0
        assert await store.last_sent("u1", Channel.EMAIL) == T0

    async def test_pending_to_failed(self) -> None:
        store = InMemoryHistoryStore()
        entry_id = await store.insert_pending("a1", "u1", Channel.EMAIL, "x@y.io")
        await store.mark_failed(entry_id, "timeout")
        entry = await store.get_entry(entry_id)
        assert entry is not None
        assert entry.status == DeliveryStatus.FAILED
        assert entry.error == "timeout"
        assert await store.last_sent("u1", Channel.EMAIL) is None

    async def test_naive_sent_at_read_as_utc(self) -> None:
        store = InMemoryHistoryStore()
        entry_id = await store.insert_pending("a1", "u1", Channel.EMAIL, "x@y.io")
        await store.mark_sent(entry_id, T0.replace(tzinfo=None))
        assert await store.last_sent("u1", Channel.EMAIL) == T0

    async def test_finalized_entry_immutable(self) -> None:
        store = InMemoryHistoryStore()
        entry_id = await store.insert_pending("a1", "u1", Channel.EMAIL, "x@y.io")
        await store.mark_sent(entry_id, T0)
        with pytest.raises(HistoryEntryFinalizedError):
            await store.mark_failed(entry_id, "late")

    async def test_skipped_entry_is_terminal(self) -> None:
        store = InMemoryHistoryStore()
        entry_id = await store.insert_skipped("a1", "u1", Channel.EMAIL, "x@y.io", "rate limited")
        with pytest.raises(HistoryEntryFinalizedError):
            await store.mark_sent(entry_id, T0)

    async def test_unknown_entry(self) -> None:
        with pytest.raises(HistoryEntryNotFoundError):
            await InMemoryHistoryStore().mark_sent("nope", T0)

    async def test_last_sent_per_user_and_channel(self) -> None:
        store = InMemoryHistoryStore()
        for user, channel, at in (
            ("u1", Channel.EMAIL, T0),
            ("u1", Channel.EMAIL, T0 + timedelta(minutes=5)),
            ("u1", Channel.WEBHOOK, T0 + timedelta(minutes=9)),
            ("u2", Channel.EMAIL, T0 + timedelta(minutes=9)),
        ):
            entry_id = await store.insert_pending("a1", user, channel, "r")
            await store.mark_sent(entry_id, at)

        assert await store.last_sent("u1", Channel.EMAIL) == T0 + timedelta(minutes=5)
        assert await store.last_sent("u1", Channel.PUSH) is None

    async def test_entries_for_event(self) -> None:
        store = InMemoryHistoryStore()
        await store.insert_pending("a1", "u1", Channel.EMAIL, "r")
        await store.insert_pending("a2", "u1", Channel.EMAIL, "r")
        await store.insert_skipped("a1", "u1", Channel.WEBHOOK, "r", "rate limited")
        entries = await store.entries_for_event("a1")
        assert [e.channel for e in entries] == [Channel.EMAIL, Channel.WEBHOOK]
