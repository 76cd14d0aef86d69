"""AlertEvaluator — turns a telemetry sample into zero or more alert events."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from src.alerting.conditions import (
    BATTERY_CONDITIONS,
    crosses,
    effective_threshold,
    format_message,
    observed_value,
    sample_conditions,
    silence_secs,
)
from src.alerting.exceptions import (
    DeviceOwnerError,
    InvalidSampleError,
    StoreUnavailableError,
)
from src.core.config import AlertingConfig
from src.core.types import (
    AlertEvent,
    AlertRule,
    ConditionType,
    Device,
    TelemetrySample,
    as_utc,
    utcnow,
)
from src.stores.base import EventStore, RuleStore

logger = structlog.get_logger(__name__)


class AlertEvaluator:
    """Decides, per condition type, whether a sample raises a new alert event.

    For each condition the sample implies:

    1. Look up the owner's enabled rule (none → nothing to do).
    2. Compare the observed value against the effective threshold.
    3. Ask the event store to insert a new ``active`` event unless the most
       recent event for the same (device, condition type) was triggered
       within the rule's cooldown, whatever its status.

    Store failures raise :class:`StoreUnavailableError`; no event is raised.

    Usage::

        evaluator = AlertEvaluator(rule_store, event_store)
        events = await evaluator.evaluate(sample, device)
    """

    def __init__(
        self,
        rules: RuleStore,
        events: EventStore,
        config: AlertingConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._rules = rules
        self._events = events
        self._config = config or AlertingConfig()
        self._clock = clock

    # ── Public API ──────────────────────────────────────────────

    async def evaluate(self, sample: TelemetrySample, device: Device) -> list[AlertEvent]:
        """Evaluate every condition *sample* implies; return the new events.

        A critical-battery crossing masks the low-battery check for the same
        sample.
        """
        owner = self._validate(sample, device)
        raised: list[AlertEvent] = []
        battery_crossed = False

        for condition in sample_conditions(sample):
            if condition in BATTERY_CONDITIONS and battery_crossed:
                continue
            crossed, event = await self._evaluate(sample, device, owner, condition)
            if crossed and condition in BATTERY_CONDITIONS:
                battery_crossed = True
            if event is not None:
                raised.append(event)

        return raised

    async def evaluate_condition(
        self,
        sample: TelemetrySample,
        device: Device,
        condition: ConditionType,
    ) -> AlertEvent | None:
        """Evaluate a single condition type; return the new event, if any."""
        owner = self._validate(sample, device)
        _, event = await self._evaluate(sample, device, owner, condition)
        return event

    async def evaluate_offline(
        self, device: Device, now: datetime | None = None
    ) -> AlertEvent | None:
        """Raise ``device_offline`` if the device has been silent too long."""
        owner = self._owner(device)
        now = as_utc(now or self._clock())

        rule = await self._get_rule(owner, ConditionType.DEVICE_OFFLINE)
        if rule is None:
            return None

        silence = silence_secs(device, now)
        if silence is None:
            return None

        threshold = effective_threshold(
            ConditionType.DEVICE_OFFLINE, rule, device, self._config
        )
        if not crosses(ConditionType.DEVICE_OFFLINE, silence, threshold):
            return None

        return await self._raise(device, rule, silence, threshold, now)

    # ── Internals ───────────────────────────────────────────────

    @staticmethod
    def _owner(device: Device) -> str:
        if not device.owner_id:
            raise DeviceOwnerError(f"Device {device.id} has no owner")
        return device.owner_id

    def _validate(self, sample: TelemetrySample, device: Device) -> str:
        if sample.recorded_at is None:
            raise InvalidSampleError(f"Sample for {sample.device_id} has no timestamp")
        if sample.battery_level is None and sample.temperature is None:
            raise InvalidSampleError(f"Sample for {sample.device_id} has no value")
        if sample.device_id != device.id:
            raise InvalidSampleError(
                f"Sample device {sample.device_id} does not match device {device.id}"
            )
        return self._owner(device)

    async def _get_rule(self, owner: str, condition: ConditionType) -> AlertRule | None:
        try:
            rule = await self._rules.get_enabled_rule(owner, condition)
        except Exception as exc:
            raise StoreUnavailableError(f"Rule lookup failed: {exc}") from exc
        if rule is None:
            logger.debug("no_enabled_rule", user_id=owner, condition_type=condition)
        return rule

    async def _evaluate(
        self,
        sample: TelemetrySample,
        device: Device,
        owner: str,
        condition: ConditionType,
    ) -> tuple[bool, AlertEvent | None]:
        """Return (crossed, new_event) for one condition."""
        value = observed_value(condition, sample, device, self._config)
        if value is None:
            return False, None

        rule = await self._get_rule(owner, condition)
        if rule is None:
            return False, None

        threshold = effective_threshold(condition, rule, device, self._config)
        if not crosses(condition, value, threshold):
            return False, None

        triggered_at = sample.recorded_at or self._clock()
        event = await self._raise(device, rule, value, threshold, triggered_at)
        return True, event

    async def _raise(
        self,
        device: Device,
        rule: AlertRule,
        value: float,
        threshold: float,
        triggered_at: datetime,
    ) -> AlertEvent | None:
        candidate = AlertEvent(
            device_id=device.id,
            rule_id=rule.id,
            condition_type=rule.condition_type,
            severity=rule.severity,
            message=format_message(rule.condition_type, value),
            value=value,
            threshold=threshold,
            triggered_at=triggered_at,
        )

        try:
            event = await self._events.insert_event_if_not_cooling_down(
                candidate, rule.cooldown
            )
        except Exception as exc:
            raise StoreUnavailableError(f"Event insert failed: {exc}") from exc

        if event is None:
            logger.debug(
                "alert_suppressed_cooldown",
                device_id=device.id,
                condition_type=rule.condition_type,
                cooldown_secs=rule.cooldown.total_seconds(),
            )
            return None

        logger.info(
            "alert_raised",
            alert_id=event.id,
            device_id=device.id,
            condition_type=event.condition_type,
            severity=event.severity,
            value=value,
            threshold=threshold,
        )
        return event
