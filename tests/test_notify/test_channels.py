"""Tests for channel senders — SMTP and HTTP mocking, recipients, push fan-out."""

from __future__ import annotations

import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from pydantic import SecretStr

from src.core.config import EmailConfig, WebhookConfig
from src.core.types import Channel, RenderedAlert, Severity
from src.notify.channels import EmailSender, PushSender, WebhookSender
from src.notify.exceptions import SendError


# ── Helpers ─────────────────────────────────────────────────────


def _alert(**kw: object) -> RenderedAlert:
    defaults: dict[str, object] = {
        "severity": Severity.CRITICAL,
        "title": "[CRITICAL] Critical battery",
        "body": "Phone: Critical battery: 5%",
        "fields": {"device": "Phone", "value": "5.00"},
        "data": {"alert_id": "a1", "device_id": "d1", "value": 5.0},
    }
    defaults.update(kw)
    return RenderedAlert(**defaults)  # type: ignore[arg-type]


def _email_config(**kw: object) -> EmailConfig:
    defaults: dict[str, object] = {
        "enabled": True,
        "smtp_host": "smtp.test",
        "smtp_port": 2525,
        "from_email": "alerts@test.io",
        "from_name": "Alerts",
    }
    defaults.update(kw)
    return EmailConfig(**defaults)  # type: ignore[arg-type]


def _mock_response(status: int = 200, text: str = "ok") -> AsyncMock:
    resp = AsyncMock()
    resp.status = status
    resp.text = AsyncMock(return_value=text)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


def _mock_session(resp: AsyncMock | None = None) -> MagicMock:
    session = MagicMock()
    session.post = MagicMock(return_value=resp or _mock_response())
    session.closed = False
    session.close = AsyncMock()
    return session


class FakePushBackend:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.delivered: list[tuple[str, str, str, dict[str, str] | None]] = []
        self._failing = failing or set()

    async def send_push(
        self,
        recipient: str,
        title: str,
        body: str,
        *,
        metadata: dict[str, str] | None = None,
    ) -> None:
        if recipient in self._failing:
            raise ConnectionError(f"{recipient} gone")
        self.delivered.append((recipient, title, body, metadata))


# ── EmailSender ─────────────────────────────────────────────────


class TestEmailRecipient:
    def test_valid(self) -> None:
        sender = EmailSender(_email_config())
        assert sender.channel == Channel.EMAIL
        assert sender.resolve_recipient({"email": " owner@example.com "}) == "owner@example.com"

    def test_invalid(self) -> None:
        sender = EmailSender(_email_config())
        assert sender.resolve_recipient({}) is None
        assert sender.resolve_recipient({"email": 42}) is None
        assert sender.resolve_recipient({"email": "no-at-sign"}) is None
        assert sender.resolve_recipient({"email": "user@localhost"}) is None
        assert sender.resolve_recipient({"email": "@example.com"}) is None


class TestEmailMessage:
    def test_headers_and_body(self) -> None:
        msg = EmailSender(_email_config()).build_message("owner@example.com", _alert())
        assert msg["From"] == "Alerts <alerts@test.io>"
        assert msg["To"] == "owner@example.com"
        assert msg["Subject"] == "[CRITICAL] Critical battery"
        content = msg.get_content()
        assert "Phone: Critical battery: 5%" in content
        assert "device: Phone" in content
        assert "value: 5.00" in content


class TestEmailSend:
    async def test_send_success(self) -> None:
        sender = EmailSender(
            _email_config(username="bot", password=SecretStr("pw"))
        )
        with patch("src.notify.channels.smtplib.SMTP") as smtp_cls:
            await sender.send("owner@example.com", _alert())

        smtp_cls.assert_called_once_with("smtp.test", 2525, timeout=10.0)
        smtp = smtp_cls.return_value
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("bot", "pw")
        smtp.send_message.assert_called_once()
        smtp.quit.assert_called_once()

    async def test_no_tls_no_login(self) -> None:
        sender = EmailSender(_email_config(use_tls=False))
        with patch("src.notify.channels.smtplib.SMTP") as smtp_cls:
            await sender.send("owner@example.com", _alert())

        smtp = smtp_cls.return_value
        smtp.starttls.assert_not_called()
        smtp.login.assert_not_called()
        smtp.send_message.assert_called_once()

    async def test_smtp_error_raises_send_error(self) -> None:
        sender = EmailSender(_email_config())
        with patch("src.notify.channels.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.send_message.side_effect = smtplib.SMTPException("rejected")
            with pytest.raises(SendError, match="rejected"):
                await sender.send("owner@example.com", _alert())
            smtp_cls.return_value.quit.assert_called_once()

    async def test_connection_error_raises_send_error(self) -> None:
        sender = EmailSender(_email_config())
        with patch("src.notify.channels.smtplib.SMTP", side_effect=OSError("refused")):
            with pytest.raises(SendError):
                await sender.send("owner@example.com", _alert())


# ── WebhookSender ───────────────────────────────────────────────


class TestWebhookRecipient:
    def test_valid(self) -> None:
        sender = WebhookSender(WebhookConfig(enabled=True))
        assert sender.resolve_recipient({"url": "https://x.io/hook"}) == "https://x.io/hook"
        assert sender.resolve_recipient({"url": "http://x.io/hook"}) == "http://x.io/hook"

    def test_invalid(self) -> None:
        sender = WebhookSender(WebhookConfig(enabled=True))
        assert sender.resolve_recipient({}) is None
        assert sender.resolve_recipient({"url": "ftp://x.io"}) is None
        assert sender.resolve_recipient({"url": ["https://x.io"]}) is None


class TestWebhookSend:
    async def test_send_success(self) -> None:
        sender = WebhookSender(WebhookConfig(enabled=True))
        session = _mock_session()
        sender._session = session

        await sender.send("https://x.io/hook", _alert())

        session.post.assert_called_once()
        call_args = session.post.call_args
        assert call_args[0][0] == "https://x.io/hook"
        payload = call_args[1]["json"]
        assert payload["title"] == "[CRITICAL] Critical battery"
        assert payload["severity"] == "critical"
        assert payload["alert_id"] == "a1"
        assert payload["fields"]["device"] == "Phone"

    async def test_send_failure_status(self) -> None:
        sender = WebhookSender(WebhookConfig(enabled=True))
        sender._session = _mock_session(_mock_response(500, "server error"))

        with pytest.raises(SendError, match="HTTP 500"):
            await sender.send("https://x.io/hook", _alert())

    async def test_send_client_error(self) -> None:
        sender = WebhookSender(WebhookConfig(enabled=True))
        session = _mock_session()
        session.post = MagicMock(side_effect=aiohttp.ClientError("connection reset"))
        sender._session = session

        with pytest.raises(SendError, match="connection reset"):
            await sender.send("https://x.io/hook", _alert())

    async def test_close_session(self) -> None:
        sender = WebhookSender(WebhookConfig(enabled=True))
        session = _mock_session()
        sender._session = session

        await sender.close()
        session.close.assert_awaited_once()
        assert sender._session is None

    async def test_close_without_session(self) -> None:
        sender = WebhookSender(WebhookConfig(enabled=True))
        await sender.close()
        assert sender._session is None


# ── PushSender ──────────────────────────────────────────────────


class TestPushRecipient:
    def test_joins_subscriptions(self) -> None:
        sender = PushSender(FakePushBackend())
        assert sender.resolve_recipient({"subscriptions": ["s1", " s2 ", ""]}) == "s1,s2"

    def test_no_subscriptions(self) -> None:
        sender = PushSender(FakePushBackend())
        assert sender.resolve_recipient({}) is None
        assert sender.resolve_recipient({"subscriptions": []}) is None
        assert sender.resolve_recipient({"subscriptions": "s1"}) is None


class TestPushSend:
    async def test_delivers_to_each_subscription(self) -> None:
        backend = FakePushBackend()
        await PushSender(backend).send("s1,s2", _alert())
        assert [d[0] for d in backend.delivered] == ["s1", "s2"]
        _, title, body, metadata = backend.delivered[0]
        assert title == "[CRITICAL] Critical battery"
        assert body == "Phone: Critical battery: 5%"
        assert metadata == {"alert_id": "a1", "device_id": "d1", "value": "5.0"}

    async def test_partial_failure_succeeds(self) -> None:
        backend = FakePushBackend(failing={"s1"})
        await PushSender(backend).send("s1,s2", _alert())
        assert [d[0] for d in backend.delivered] == ["s2"]

    async def test_all_fail(self) -> None:
        backend = FakePushBackend(failing={"s1", "s2"})
        with pytest.raises(SendError, match="all subscriptions"):
            await PushSender(backend).send("s1,s2", _alert())

    async def test_zero_subscriptions(self) -> None:
        with pytest.raises(SendError, match="No active push subscriptions"):
            await PushSender(FakePushBackend()).send("", _alert())
