"""NotificationService — resolve then dispatch; the alerting side's NotificationSender."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime

import structlog

from src.alerting.notifier import NotificationSender
from src.core.types import AlertEvent, DeliveryStatus, Device, DispatchOutcome
from src.notify.dispatcher import ChannelDispatcher
from src.notify.resolver import PreferenceResolver, ResolutionResult
from src.stores.base import HistoryStore

logger = structlog.get_logger(__name__)


class NotificationService(NotificationSender):
    """Turns a raised alert event into delivered notifications.

    When ``audit_skipped`` is set, each channel dropped by the frequency
    gate gets a ``skipped`` history entry so rate limiting is visible in the
    ledger.

    Notifications for one owner run one at a time: the frequency gate reads
    the last ``sent`` entry, so a second alert must not be resolved while an
    earlier one is still being delivered.
    """

    def __init__(
        self,
        resolver: PreferenceResolver,
        dispatcher: ChannelDispatcher,
        history: HistoryStore,
        audit_skipped: bool = True,
    ) -> None:
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._history = history
        self._audit_skipped = audit_skipped
        self._owner_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def send_alert_notification(
        self, event: AlertEvent, owner_id: str, device: Device
    ) -> None:
        await self.notify(event, owner_id, device_name=device.name)

    async def notify(
        self,
        event: AlertEvent,
        owner_id: str,
        device_name: str = "",
        now: datetime | None = None,
    ) -> list[DispatchOutcome]:
        """Resolve channels for *owner_id* and dispatch; return the outcomes."""
        async with self._owner_locks[owner_id]:
            return await self._notify(event, owner_id, device_name, now)

    async def _notify(
        self,
        event: AlertEvent,
        owner_id: str,
        device_name: str,
        now: datetime | None,
    ) -> list[DispatchOutcome]:
        result = await self._resolver.resolve_detailed(event, owner_id, now)

        if self._audit_skipped:
            await self._record_skipped(event, owner_id, result)

        if not result.candidates:
            logger.info(
                "no_eligible_channels",
                alert_id=event.id,
                user_id=owner_id,
                blocked=result.blocked.reason if result.blocked else None,
            )
            return []

        outcomes = await self._dispatcher.dispatch(
            event, owner_id, result.candidates, device_name
        )
        logger.info(
            "alert_notification_dispatched",
            alert_id=event.id,
            user_id=owner_id,
            sent=sum(1 for o in outcomes if o.status == DeliveryStatus.SENT),
            failed=sum(1 for o in outcomes if o.status == DeliveryStatus.FAILED),
        )
        return outcomes

    async def _record_skipped(
        self, event: AlertEvent, owner_id: str, result: ResolutionResult
    ) -> None:
        for candidate in result.rate_limited:
            verdict = result.rejected.get(candidate.channel)
            reason = "rate limited"
            if verdict is not None and verdict.detail:
                reason = f"rate limited: {verdict.detail}"
            await self._history.insert_skipped(
                event.id, owner_id, candidate.channel, candidate.recipient, reason
            )

    async def close(self) -> None:
        await self._dispatcher.close()
