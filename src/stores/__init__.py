"""Store interfaces for rules, events, preferences and notification history."""

from src.stores.base import EventStore, HistoryStore, PreferenceStore, RuleStore

__all__ = [
    "EventStore",
    "HistoryStore",
    "PreferenceStore",
    "RuleStore",
]
