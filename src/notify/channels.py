"""Channel senders — email (SMTP), webhook (HTTP POST) and push delivery.

Every sender exposes the same capability: parse its own slice of the user's
preference blob into a recipient, and deliver a rendered alert to it.
"""

from __future__ import annotations

import abc
import asyncio
import smtplib
from email.message import EmailMessage
from typing import Any, Protocol

import aiohttp
import structlog

from src.core.config import EmailConfig, WebhookConfig
from src.core.types import Channel, RenderedAlert
from src.notify.exceptions import SendError

logger = structlog.get_logger(__name__)


class ChannelSender(abc.ABC):
    """Base class for notification delivery channels."""

    channel: Channel

    @abc.abstractmethod
    def resolve_recipient(self, config: dict[str, Any]) -> str | None:
        """Extract the recipient from the channel's config blob, or None."""

    @abc.abstractmethod
    async def send(self, recipient: str, alert: RenderedAlert) -> None:
        """Deliver *alert* to *recipient*. Raises SendError on failure."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


# ── Email ───────────────────────────────────────────────────────


class EmailSender(ChannelSender):
    """Delivers alerts as plain-text email over SMTP.

    Config blob: ``{"enabled": true, "email": "user@example.com"}``.
    """

    channel = Channel.EMAIL

    def __init__(self, config: EmailConfig) -> None:
        self._config = config

    def resolve_recipient(self, config: dict[str, Any]) -> str | None:
        email = config.get("email")
        if not isinstance(email, str):
            return None
        email = email.strip()
        local, sep, domain = email.partition("@")
        if not sep or not local or "." not in domain:
            return None
        return email

    def build_message(self, recipient: str, alert: RenderedAlert) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f"{self._config.from_name} <{self._config.from_email}>"
        message["To"] = recipient
        message["Subject"] = alert.title

        lines = [alert.body, ""] if alert.body else []
        lines.extend(f"{key}: {value}" for key, value in alert.fields.items())
        message.set_content("\n".join(lines))
        return message

    async def send(self, recipient: str, alert: RenderedAlert) -> None:
        message = self.build_message(recipient, alert)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise SendError(f"SMTP delivery to {recipient} failed: {exc}") from exc

    def _send(self, message: EmailMessage) -> None:
        cfg = self._config
        smtp = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_secs)
        try:
            if cfg.use_tls:
                smtp.starttls()
            password = cfg.password.get_secret_value()
            if cfg.username and password:
                smtp.login(cfg.username, password)
            smtp.send_message(message)
        finally:
            smtp.quit()


# ── Webhook ─────────────────────────────────────────────────────


class WebhookSender(ChannelSender):
    """Delivers alerts as a JSON POST to a user-supplied URL.

    Config blob: ``{"enabled": true, "url": "https://..."}``.
    """

    channel = Channel.WEBHOOK

    def __init__(self, config: WebhookConfig) -> None:
        self._config = config
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self._config.user_agent},
            )
        return self._session

    def resolve_recipient(self, config: dict[str, Any]) -> str | None:
        url = config.get("url")
        if not isinstance(url, str):
            return None
        url = url.strip()
        if not url.startswith(("https://", "http://")):
            return None
        return url

    @staticmethod
    def build_payload(alert: RenderedAlert) -> dict[str, Any]:
        return {
            "title": alert.title,
            "body": alert.body,
            "severity": alert.severity.value,
            "fields": alert.fields,
            **alert.data,
        }

    async def send(self, recipient: str, alert: RenderedAlert) -> None:
        payload = self.build_payload(alert)
        try:
            session = self._get_session()
            async with session.post(recipient, json=payload) as resp:
                if 200 <= resp.status < 300:
                    return
                body = await resp.text()
        except aiohttp.ClientError as exc:
            raise SendError(f"Webhook POST to {recipient} failed: {exc}") from exc

        logger.warning(
            "webhook_send_failed",
            status=resp.status,
            body=body[:200],
        )
        raise SendError(f"Webhook returned HTTP {resp.status}")

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


# ── Push ────────────────────────────────────────────────────────


class PushBackend(Protocol):
    """Connector that delivers one push message to one subscription."""

    async def send_push(
        self,
        recipient: str,
        title: str,
        body: str,
        *,
        metadata: dict[str, str] | None = None,
    ) -> None:
        ...


class PushSender(ChannelSender):
    """Delivers alerts to each of a user's push subscriptions.

    Config blob: ``{"enabled": true, "subscriptions": ["sub-1", "sub-2"]}``.
    The recipient is the comma-joined subscription list; delivery succeeds
    if at least one subscription accepts the message.
    """

    channel = Channel.PUSH

    def __init__(self, backend: PushBackend) -> None:
        self._backend = backend

    def resolve_recipient(self, config: dict[str, Any]) -> str | None:
        subs = config.get("subscriptions")
        if not isinstance(subs, list):
            return None
        ids = [s.strip() for s in subs if isinstance(s, str) and s.strip()]
        return ",".join(ids) if ids else None

    async def send(self, recipient: str, alert: RenderedAlert) -> None:
        subscriptions = [s for s in recipient.split(",") if s]
        if not subscriptions:
            raise SendError("No active push subscriptions")

        metadata = {k: str(v) for k, v in alert.data.items()}
        delivered = 0
        errors: list[str] = []
        for sub in subscriptions:
            try:
                await self._backend.send_push(
                    sub, alert.title, alert.body, metadata=metadata
                )
                delivered += 1
            except Exception as exc:
                errors.append(f"{sub}: {exc}")
                logger.warning("push_subscription_failed", subscription=sub, error=str(exc))

        if delivered == 0:
            raise SendError("Push delivery failed for all subscriptions: " + "; ".join(errors))
