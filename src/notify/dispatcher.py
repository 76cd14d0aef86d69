"""Channel dispatcher — fans one alert out to its candidate channels concurrently."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime

import structlog

from src.core.types import (
    AlertEvent,
    Candidate,
    Channel,
    DeliveryStatus,
    DispatchOutcome,
    RenderedAlert,
    utcnow,
)
from src.notify.channels import ChannelSender
from src.notify.exceptions import SendError, SendTimeoutError
from src.notify.formatters import render_alert
from src.stores.base import HistoryStore

logger = structlog.get_logger(__name__)


class ChannelDispatcher:
    """Delivers one alert event to each candidate channel and records the attempt.

    - Every candidate gets a ``pending`` history entry before its send.
    - Sends run concurrently; each is bounded by ``send_timeout_secs``.
    - Success marks the entry ``sent``; an error or timeout marks it
      ``failed`` with the detail. No retries.
    - A cancelled send marks its entry ``failed`` with ``cancelled`` before
      the cancellation propagates.
    - One channel's failure never affects another, and nothing propagates
      to the caller.
    """

    def __init__(
        self,
        senders: Mapping[Channel, ChannelSender],
        history: HistoryStore,
        send_timeout_secs: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._senders = senders
        self._history = history
        self._send_timeout_secs = send_timeout_secs
        self._clock = clock

    async def dispatch(
        self,
        event: AlertEvent,
        owner_id: str,
        candidates: list[Candidate],
        device_name: str = "",
    ) -> list[DispatchOutcome]:
        """Send *event* to every candidate; return one outcome per recorded attempt."""
        if not candidates:
            return []

        alert = render_alert(event, device_name)
        results = await asyncio.gather(
            *(self._dispatch_one(event, owner_id, c, alert) for c in candidates),
            return_exceptions=True,
        )

        outcomes: list[DispatchOutcome] = []
        for candidate, result in zip(candidates, results):
            if isinstance(result, BaseException):
                # History bookkeeping itself failed; the attempt is unrecorded.
                logger.error(
                    "dispatch_bookkeeping_error",
                    alert_id=event.id,
                    channel=candidate.channel.value,
                    error=repr(result),
                )
                continue
            outcomes.append(result)
        return outcomes

    async def _dispatch_one(
        self,
        event: AlertEvent,
        owner_id: str,
        candidate: Candidate,
        alert: RenderedAlert,
    ) -> DispatchOutcome:
        entry_id = await self._history.insert_pending(
            event.id, owner_id, candidate.channel, candidate.recipient
        )

        # Anything that escapes the send without setting this is a cancellation.
        error: str | None = "cancelled"
        try:
            await self._send(candidate, alert)
            error = None
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        finally:
            error = await self._finalize(entry_id, error)

        if error is not None:
            logger.warning(
                "notification_failed",
                alert_id=event.id,
                channel=candidate.channel.value,
                recipient=candidate.recipient,
                error=error,
            )
            return DispatchOutcome(
                channel=candidate.channel,
                recipient=candidate.recipient,
                entry_id=entry_id,
                status=DeliveryStatus.FAILED,
                error=error,
            )

        logger.info(
            "notification_sent",
            alert_id=event.id,
            channel=candidate.channel.value,
            recipient=candidate.recipient,
        )
        return DispatchOutcome(
            channel=candidate.channel,
            recipient=candidate.recipient,
            entry_id=entry_id,
            status=DeliveryStatus.SENT,
        )

    async def _finalize(self, entry_id: str, error: str | None) -> str | None:
        """Move a pending entry to ``sent`` or ``failed``; return the recorded error.

        A failed ``mark_sent`` falls back to ``failed`` so the entry never
        stays pending.
        """
        if error is None:
            try:
                await self._history.mark_sent(entry_id, self._clock())
                return None
            except Exception as exc:
                logger.exception("history_mark_sent_error", entry_id=entry_id)
                error = f"history update failed: {exc}"
        try:
            await self._history.mark_failed(entry_id, error)
        except Exception:
            logger.exception("history_mark_failed_error", entry_id=entry_id)
        return error

    async def _send(self, candidate: Candidate, alert: RenderedAlert) -> None:
        sender = self._senders.get(candidate.channel)
        if sender is None:
            raise SendError(f"No sender registered for {candidate.channel.value}")
        try:
            await asyncio.wait_for(
                sender.send(candidate.recipient, alert),
                timeout=self._send_timeout_secs,
            )
        except TimeoutError as exc:
            raise SendTimeoutError(
                f"timeout after {self._send_timeout_secs:g}s"
            ) from exc

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for sender in self._senders.values():
            try:
                await sender.close()
            except Exception:
                logger.exception("sender_close_error", channel=sender.channel.value)
