"""Alert evaluation, lifecycle and the telemetry-ingestion pipeline."""

from src.alerting.evaluator import AlertEvaluator
from src.alerting.lifecycle import acknowledge, can_transition, resolve
from src.alerting.notifier import NotificationSender
from src.alerting.offline import OfflineSweeper
from src.alerting.pipeline import AlertPipeline
from src.alerting.rules import default_rules

__all__ = [
    "AlertEvaluator",
    "AlertPipeline",
    "NotificationSender",
    "OfflineSweeper",
    "acknowledge",
    "can_transition",
    "default_rules",
    "resolve",
]
