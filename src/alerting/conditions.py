"""Pure functions for condition detection, threshold comparison and messages."""

from __future__ import annotations

from datetime import datetime

from src.core.config import AlertingConfig
from src.core.types import AlertRule, ConditionType, Device, TelemetrySample

# Battery conditions in precedence order: a critical crossing masks a low one.
BATTERY_CONDITIONS: tuple[ConditionType, ...] = (
    ConditionType.CRITICAL_BATTERY,
    ConditionType.LOW_BATTERY,
)

_DEVICE_THRESHOLD_FIELD: dict[ConditionType, str] = {
    ConditionType.LOW_BATTERY: "low_battery",
    ConditionType.CRITICAL_BATTERY: "critical_battery",
    ConditionType.HIGH_TEMPERATURE: "high_temperature",
}


def sample_conditions(sample: TelemetrySample) -> list[ConditionType]:
    """Condition types a sample carries enough data to evaluate."""
    conditions: list[ConditionType] = []
    if sample.battery_level is not None:
        conditions.extend(BATTERY_CONDITIONS)
        conditions.append(ConditionType.RAPID_DRAIN)
    if sample.temperature is not None:
        conditions.append(ConditionType.HIGH_TEMPERATURE)
    return conditions


def effective_threshold(
    condition: ConditionType,
    rule: AlertRule,
    device: Device,
    config: AlertingConfig,
) -> float:
    """Threshold to compare against: device override, then rule, then config."""
    field = _DEVICE_THRESHOLD_FIELD.get(condition)
    if field is not None and device.thresholds is not None:
        return float(getattr(device.thresholds, field))
    if condition == ConditionType.DEVICE_OFFLINE and rule.threshold <= 0:
        return config.offline_after_secs
    return rule.threshold


def drain_rate_per_hour(
    sample: TelemetrySample,
    device: Device,
    window_secs: float,
) -> float | None:
    """Battery drop in percent per hour since the device's previous reading.

    Returns None when there is no usable previous reading: the device is
    charging, the previous reading is missing, not older than the sample, or
    older than *window_secs*.
    """
    if sample.is_charging or sample.battery_level is None or sample.recorded_at is None:
        return None
    if device.last_battery_level is None or device.last_battery_at is None:
        return None
    elapsed = (sample.recorded_at - device.last_battery_at).total_seconds()
    if elapsed <= 0 or elapsed > window_secs:
        return None
    return (device.last_battery_level - sample.battery_level) / (elapsed / 3600.0)


def observed_value(
    condition: ConditionType,
    sample: TelemetrySample,
    device: Device,
    config: AlertingConfig,
) -> float | None:
    """The value a sample contributes for *condition*, or None if not applicable.

    Battery-level conditions never apply while the device is charging.
    """
    if condition in BATTERY_CONDITIONS:
        if sample.is_charging:
            return None
        return sample.battery_level
    if condition == ConditionType.HIGH_TEMPERATURE:
        return sample.temperature
    if condition == ConditionType.RAPID_DRAIN:
        return drain_rate_per_hour(sample, device, config.rapid_drain_window_secs)
    return None


def silence_secs(device: Device, now: datetime) -> float | None:
    """Seconds since the device last reported, or None if it never has."""
    if device.last_seen_at is None:
        return None
    return (now - device.last_seen_at).total_seconds()


def crosses(condition: ConditionType, value: float, threshold: float) -> bool:
    """Whether *value* is on the triggering side of *threshold*."""
    if condition in BATTERY_CONDITIONS:
        return value < threshold
    # Temperature, offline silence and drain rate all trigger above.
    return value > threshold


def format_message(condition: ConditionType, value: float) -> str:
    """Human-readable message for an alert event."""
    if condition == ConditionType.LOW_BATTERY:
        return f"Low battery: {int(value)}%"
    if condition == ConditionType.CRITICAL_BATTERY:
        return f"Critical battery: {int(value)}%"
    if condition == ConditionType.HIGH_TEMPERATURE:
        return f"High temperature: {value:.1f}°C"
    if condition == ConditionType.RAPID_DRAIN:
        return f"Rapid drain: {value:.1f}%/h"
    return f"Device offline: no report for {int(value // 60)} min"
