"""AlertPipeline — the telemetry-ingestion entry point: evaluate, then notify."""

from __future__ import annotations

import asyncio
from datetime import datetime

import structlog

from src.alerting.evaluator import AlertEvaluator
from src.alerting.exceptions import AlertingError
from src.alerting.notifier import NotificationSender
from src.core.logging import log_context
from src.core.types import AlertEvent, Device, TelemetrySample

logger = structlog.get_logger(__name__)


class AlertPipeline:
    """Runs evaluate → resolve → dispatch for each incoming sample.

    - Evaluation failures are logged and swallowed here; the telemetry write
      that preceded the call is never affected.
    - Notification delivery runs as a background task per raised event, so
      ingestion never waits on channel senders, and delivery failures never
      reach the caller.

    Usage::

        pipeline = AlertPipeline(evaluator, notifier=notification_service)
        await pipeline.on_sample(sample, device)
        ...
        await pipeline.close()
    """

    def __init__(
        self,
        evaluator: AlertEvaluator,
        notifier: NotificationSender | None = None,
    ) -> None:
        self._evaluator = evaluator
        self._notifier = notifier
        self._tasks: set[asyncio.Task[None]] = set()
        self._evaluation_failures = 0

    @property
    def pending_notifications(self) -> int:
        return len(self._tasks)

    @property
    def evaluation_failures(self) -> int:
        """Number of samples whose evaluation failed closed."""
        return self._evaluation_failures

    # ── Entry points ────────────────────────────────────────────

    async def on_sample(self, sample: TelemetrySample, device: Device) -> None:
        """Evaluate one sample and schedule notifications for new events."""
        with log_context(device_id=device.id):
            try:
                events = await self._evaluator.evaluate(sample, device)
            except AlertingError as exc:
                self._evaluation_failures += 1
                logger.error(
                    "alert_evaluation_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return

            for event in events:
                self._schedule(event, device)

    async def on_offline_check(self, device: Device, now: datetime | None = None) -> None:
        """Evaluate the offline condition for *device*."""
        with log_context(device_id=device.id):
            try:
                event = await self._evaluator.evaluate_offline(device, now)
            except AlertingError as exc:
                self._evaluation_failures += 1
                logger.error(
                    "offline_evaluation_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return

            if event is not None:
                self._schedule(event, device)

    # ── Background delivery ─────────────────────────────────────

    def _schedule(self, event: AlertEvent, device: Device) -> None:
        if self._notifier is None or device.owner_id is None:
            return
        task = asyncio.create_task(
            self._notify(self._notifier, event, device.owner_id, device)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _notify(
        self,
        notifier: NotificationSender,
        event: AlertEvent,
        owner_id: str,
        device: Device,
    ) -> None:
        try:
            await notifier.send_alert_notification(event, owner_id, device)
        except Exception:
            logger.exception(
                "alert_notification_failed",
                alert_id=event.id,
                user_id=owner_id,
            )

    # ── Lifecycle ───────────────────────────────────────────────

    async def drain(self) -> None:
        """Wait until every scheduled notification task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self._notifier is not None:
            try:
                await self._notifier.close()
            except Exception:
                logger.exception("notifier_close_error")
