"""PreferenceResolver — reduces a user's preferences to the channels allowed to fire now."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime

import structlog
from pydantic import BaseModel, Field

from src.core.types import (
    AlertEvent,
    Candidate,
    Channel,
    GateRejection,
    GateVerdict,
    as_utc,
    utcnow,
)
from src.notify.channels import ChannelSender
from src.notify.gates import (
    check_channel_enabled,
    check_enabled,
    check_frequency,
    check_quiet_hours,
    check_severity,
)
from src.stores.base import HistoryStore, PreferenceStore

# Dedicated structured logger for decision records.
decision_logger = structlog.get_logger("decision_log")


class ResolutionResult(BaseModel):
    """Everything the resolver decided for one event.

    ``blocked`` is set when an event-level gate (global switch, severity,
    quiet hours) rejected the event outright. ``rate_limited`` lists the
    channels the frequency gate dropped, with the recipient they would have
    used. ``rejected`` holds the verdict for every dropped channel.
    """

    candidates: list[Candidate] = Field(default_factory=list)
    blocked: GateVerdict | None = None
    rate_limited: list[Candidate] = Field(default_factory=list)
    rejected: dict[Channel, GateVerdict] = Field(default_factory=dict)


class PreferenceResolver:
    """Applies the notification gates in order for one alert event.

    1. Global enabled flag.
    2. Severity admission flag.
    3. Quiet hours in the user's timezone.
    4. Per-channel frequency limit against the last ``sent`` history entry.
    5. Per-channel recipient resolution by the channel's sender.

    Gates 1–3 short-circuit to an empty result; gates 4–5 drop single
    channels without affecting the others. Every outcome is normal control
    flow, never an error.
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        history: HistoryStore,
        senders: Mapping[Channel, ChannelSender],
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._preferences = preferences
        self._history = history
        self._senders = senders
        self._clock = clock

    async def resolve(
        self, event: AlertEvent, owner_id: str, now: datetime | None = None
    ) -> list[Candidate]:
        """Return the (channel, recipient) pairs allowed to fire for *event*."""
        result = await self.resolve_detailed(event, owner_id, now)
        return result.candidates

    async def resolve_detailed(
        self, event: AlertEvent, owner_id: str, now: datetime | None = None
    ) -> ResolutionResult:
        now = as_utc(now or self._clock())
        pref = await self._preferences.get_preference(owner_id)

        for verdict in (
            check_enabled(pref),
            check_severity(pref, event.severity),
            check_quiet_hours(pref, now),
        ):
            if not verdict.approved:
                self._log_blocked(event, owner_id, verdict)
                return ResolutionResult(blocked=verdict)

        result = ResolutionResult()
        for channel in Channel:
            if pref.channel_config(channel) is None:
                continue
            verdict = check_channel_enabled(pref, channel)
            if not verdict.approved:
                result.rejected[channel] = verdict
                continue

            sender = self._senders.get(channel)
            if sender is None:
                result.rejected[channel] = GateVerdict(
                    approved=False,
                    reason=GateRejection.NO_SENDER,
                    detail=f"No sender registered for {channel.value}",
                )
                continue

            config = pref.channel_config(channel) or {}
            last_sent = await self._history.last_sent(owner_id, channel)
            verdict = check_frequency(last_sent, now, pref.min_notification_interval)
            if not verdict.approved:
                result.rejected[channel] = verdict
                result.rate_limited.append(
                    Candidate(
                        channel=channel,
                        recipient=sender.resolve_recipient(config) or "",
                    )
                )
                continue

            recipient = sender.resolve_recipient(config)
            if recipient is None:
                result.rejected[channel] = GateVerdict(
                    approved=False,
                    reason=GateRejection.NO_RECIPIENT,
                    detail=f"No valid recipient in {channel.value} config",
                )
                continue

            result.candidates.append(Candidate(channel=channel, recipient=recipient))

        self._log_resolved(event, owner_id, result)
        return result

    def _log_blocked(self, event: AlertEvent, owner_id: str, verdict: GateVerdict) -> None:
        decision_logger.info(
            "notification_blocked",
            alert_id=event.id,
            user_id=owner_id,
            severity=event.severity.value,
            reason=verdict.reason,
            detail=verdict.detail,
        )

    def _log_resolved(self, event: AlertEvent, owner_id: str, result: ResolutionResult) -> None:
        decision_logger.info(
            "notification_resolved",
            alert_id=event.id,
            user_id=owner_id,
            severity=event.severity.value,
            channels=[c.channel.value for c in result.candidates],
            rejected={ch.value: v.reason for ch, v in result.rejected.items()},
        )
