"""Pure functions that convert alert events into RenderedAlert objects."""

from __future__ import annotations

from datetime import UTC

from src.core.types import AlertEvent, ConditionType, RenderedAlert

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"

# ── Labels ──────────────────────────────────────────────────────

_CONDITION_LABELS: dict[ConditionType, str] = {
    ConditionType.LOW_BATTERY: "Low battery",
    ConditionType.CRITICAL_BATTERY: "Critical battery",
    ConditionType.HIGH_TEMPERATURE: "High temperature",
    ConditionType.DEVICE_OFFLINE: "Device offline",
    ConditionType.RAPID_DRAIN: "Rapid battery drain",
}

_SUGGESTIONS: dict[ConditionType, str] = {
    ConditionType.LOW_BATTERY: "Charge the device soon.",
    ConditionType.CRITICAL_BATTERY: "Charge the device now to avoid shutdown.",
    ConditionType.HIGH_TEMPERATURE: "Move the device somewhere cooler and stop heavy use.",
    ConditionType.DEVICE_OFFLINE: "Check the device's power and network connection.",
    ConditionType.RAPID_DRAIN: "Check for apps or settings draining the battery.",
}


def condition_label(condition: ConditionType) -> str:
    return _CONDITION_LABELS.get(condition, condition.value)


# ── Formatters ──────────────────────────────────────────────────


def render_alert(event: AlertEvent, device_name: str = "") -> RenderedAlert:
    """Convert an AlertEvent into channel-neutral notification content."""
    label = condition_label(event.condition_type)
    device = device_name or event.device_id
    ts = event.triggered_at
    if ts.tzinfo is not None:
        ts = ts.astimezone(UTC)
    triggered_at = ts.strftime(_TIMESTAMP_FORMAT)

    title = f"[{event.severity.name}] {label}"
    body_parts = [f"{device}: {event.message}"]
    suggestion = _SUGGESTIONS.get(event.condition_type)
    if suggestion:
        body_parts.append(suggestion)

    fields = {
        "device": device,
        "condition": label,
        "severity": event.severity.value,
        "value": f"{event.value:.2f}",
        "threshold": f"{event.threshold:.2f}",
        "triggered_at": triggered_at,
    }

    return RenderedAlert(
        severity=event.severity,
        title=title,
        body="\n".join(body_parts),
        fields=fields,
        data={
            "alert_id": event.id,
            "device_id": event.device_id,
            "device_name": device,
            "condition_type": event.condition_type.value,
            "severity": event.severity.value,
            "message": event.message,
            "value": event.value,
            "threshold": event.threshold,
            "triggered_at": event.triggered_at.isoformat(),
        },
    )
