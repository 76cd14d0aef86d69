"""Exception hierarchy for notification resolution and delivery."""

from __future__ import annotations


class NotificationError(Exception):
    """Base exception for all notification errors."""


class SendError(NotificationError):
    """A channel sender failed to deliver a notification."""


class SendTimeoutError(SendError):
    """A channel sender did not finish within the per-call timeout."""


class HistoryEntryNotFoundError(NotificationError):
    """No notification history entry with the given id."""


class HistoryEntryFinalizedError(NotificationError):
    """The history entry already left ``pending`` and is immutable."""
