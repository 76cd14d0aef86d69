"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, SecretStr

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class DeviceThresholds(BaseModel):
    """Per-device threshold overrides (battery in percent, temperature in °C)."""

    low_battery: float = 20.0
    critical_battery: float = 10.0
    high_temperature: float = 45.0


class AlertingConfig(BaseModel):
    """Alert evaluation configuration."""

    default_cooldown_minutes: int = 30
    offline_after_secs: float = 300.0
    offline_sweep_interval_secs: float = 60.0
    rapid_drain_window_secs: float = 3600.0
    default_thresholds: DeviceThresholds = DeviceThresholds()


class EmailConfig(BaseModel):
    """SMTP delivery configuration for the email channel."""

    enabled: bool = False
    smtp_host: str = "localhost"
    smtp_port: int = 587
    username: str = ""
    password: SecretStr = SecretStr("")
    use_tls: bool = True
    from_email: str = "alerts@localhost"
    from_name: str = "Battery Alerts"
    timeout_secs: float = 10.0


class WebhookConfig(BaseModel):
    """HTTP delivery configuration for the webhook channel."""

    enabled: bool = False
    user_agent: str = "battery-alerts-webhook/1.0"


class PushConfig(BaseModel):
    """Push delivery configuration (the backend itself is injected)."""

    enabled: bool = False


class NotificationsConfig(BaseModel):
    """Notification resolution and dispatch configuration."""

    send_timeout_secs: float = 10.0
    audit_skipped: bool = True
    default_min_interval_minutes: int = 5
    email: EmailConfig = EmailConfig()
    webhook: WebhookConfig = WebhookConfig()
    push: PushConfig = PushConfig()


class Settings(BaseModel):
    """Root settings container."""

    alerting: AlertingConfig = AlertingConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
