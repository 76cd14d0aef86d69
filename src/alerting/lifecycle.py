"""Alert lifecycle: active → acknowledged → resolved, or active → resolved."""

from __future__ import annotations

from datetime import datetime

from src.alerting.exceptions import InvalidTransitionError
from src.core.types import AlertEvent, AlertStatus, as_utc, utcnow

_ALLOWED: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED}),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED}),
    AlertStatus.RESOLVED: frozenset(),
}


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    """Return True if *current* may move to *target*."""
    return target in _ALLOWED[current]


def transition(
    event: AlertEvent, target: AlertStatus, at: datetime | None = None
) -> AlertEvent:
    """Return a copy of *event* moved to *target*, stamping the matching timestamp.

    Raises:
        InvalidTransitionError: The lifecycle does not allow the move.
    """
    if not can_transition(event.status, target):
        raise InvalidTransitionError(
            f"Alert {event.id} cannot move from {event.status} to {target}"
        )
    stamp = as_utc(at) if at else utcnow()
    update: dict[str, object] = {"status": target}
    if target == AlertStatus.ACKNOWLEDGED:
        update["acknowledged_at"] = stamp
    elif target == AlertStatus.RESOLVED:
        update["resolved_at"] = stamp
    return event.model_copy(update=update)


def acknowledge(event: AlertEvent, at: datetime | None = None) -> AlertEvent:
    return transition(event, AlertStatus.ACKNOWLEDGED, at)


def resolve(event: AlertEvent, at: datetime | None = None) -> AlertEvent:
    return transition(event, AlertStatus.RESOLVED, at)
