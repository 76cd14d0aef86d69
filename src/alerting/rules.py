"""Default alert rule set for a newly created user."""

from __future__ import annotations

from datetime import timedelta

from src.core.config import AlertingConfig
from src.core.types import AlertRule, ConditionType, Severity


def default_rules(user_id: str, config: AlertingConfig | None = None) -> list[AlertRule]:
    """Build the rules every user starts with.

    Battery and temperature thresholds come from
    ``config.default_thresholds``. The offline rule's threshold of 0 means
    "use ``config.offline_after_secs``". Rapid drain has no default rule.
    """
    cfg = config or AlertingConfig()
    thresholds = cfg.default_thresholds
    return [
        AlertRule(
            user_id=user_id,
            condition_type=ConditionType.LOW_BATTERY,
            name="Low battery",
            severity=Severity.WARNING,
            threshold=thresholds.low_battery,
            cooldown=timedelta(minutes=cfg.default_cooldown_minutes),
        ),
        AlertRule(
            user_id=user_id,
            condition_type=ConditionType.CRITICAL_BATTERY,
            name="Critical battery",
            severity=Severity.CRITICAL,
            threshold=thresholds.critical_battery,
            cooldown=timedelta(minutes=15),
        ),
        AlertRule(
            user_id=user_id,
            condition_type=ConditionType.HIGH_TEMPERATURE,
            name="High temperature",
            severity=Severity.WARNING,
            threshold=thresholds.high_temperature,
            cooldown=timedelta(minutes=60),
        ),
        AlertRule(
            user_id=user_id,
            condition_type=ConditionType.DEVICE_OFFLINE,
            name="Device offline",
            severity=Severity.INFO,
            threshold=0.0,
            cooldown=timedelta(minutes=120),
        ),
    ]
