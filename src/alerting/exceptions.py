"""Exception hierarchy for alert evaluation."""

from __future__ import annotations


class AlertingError(Exception):
    """Base exception for all alerting errors."""


class StoreUnavailableError(AlertingError):
    """A rule or event store call failed; evaluation fails closed."""


class InvalidSampleError(AlertingError):
    """The telemetry sample lacks a value or timestamp."""


class DeviceOwnerError(AlertingError):
    """The device does not resolve to exactly one owning user."""


class InvalidTransitionError(AlertingError):
    """An alert status change that the lifecycle does not allow."""


class RuleConflictError(AlertingError):
    """A second enabled rule for the same user and condition type."""


class EventNotFoundError(AlertingError):
    """No alert event with the given id."""
