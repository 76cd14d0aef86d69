#!/usr/bin/env python3
"""Telemetry replay CLI — feed a JSON-lines sample file through the alert pipeline.

Every device is owned by one user (``--user``) who starts with the default
rule set. Stores are in-memory; the resulting alert events and notification
history are printed as JSON when the replay ends.

Usage::

    python -m scripts.simulate samples.jsonl
    python -m scripts.simulate samples.jsonl --push --log-level DEBUG
    python -m scripts.simulate samples.jsonl --webhook-url https://example.com/hook
    python -m scripts.simulate samples.jsonl --offline-check-at 2025-01-01T12:00:00+00:00

Sample line format::

    {"device_id": "dev-1", "battery_level": 8, "temperature": 31.5,
     "is_charging": false, "recorded_at": "2025-01-01T10:00:00+00:00"}
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime

import structlog

from src.alerting.rules import default_rules
from src.core.config import load_settings
from src.core.logging import setup_logging
from src.core.types import (
    Channel,
    Device,
    TelemetrySample,
    UserNotificationPreference,
    as_utc,
)
from src.notify.factory import create_alert_pipeline, default_preference_factory
from src.stores.memory import (
    InMemoryEventStore,
    InMemoryHistoryStore,
    InMemoryPreferenceStore,
    InMemoryRuleStore,
)

logger = structlog.get_logger(__name__)


class LogPushBackend:
    """Push backend that only logs each delivery."""

    async def send_push(
        self,
        recipient: str,
        title: str,
        body: str,
        *,
        metadata: dict[str, str] | None = None,
    ) -> None:
        logger.info("push_delivered", subscription=recipient, title=title)


def load_samples(path: str) -> list[TelemetrySample]:
    """Load telemetry samples from a JSON-lines file, skipping blank lines."""
    samples: list[TelemetrySample] = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line:
                samples.append(TelemetrySample.model_validate_json(line))
    return samples


def build_preference(args: argparse.Namespace) -> UserNotificationPreference:
    configs: dict[Channel, dict[str, object]] = {}
    if args.email:
        configs[Channel.EMAIL] = {"enabled": True, "email": args.email}
    if args.webhook_url:
        configs[Channel.WEBHOOK] = {"enabled": True, "url": args.webhook_url}
    if args.push:
        configs[Channel.PUSH] = {"enabled": True, "subscriptions": ["simulated-device"]}
    return UserNotificationPreference(
        user_id=args.user,
        channel_configs=configs,
        notify_info=True,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay telemetry samples through the alert pipeline.",
    )
    parser.add_argument("samples", help="Path to a JSON-lines telemetry file")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument("--user", default="demo-user", help="Owner of every device")
    parser.add_argument("--email", default=None, help="Enable email to this address")
    parser.add_argument("--webhook-url", default=None, help="Enable webhook to this URL")
    parser.add_argument(
        "--push",
        action="store_true",
        help="Enable push through a logging push backend",
    )
    parser.add_argument(
        "--offline-check-at",
        default=None,
        help="ISO timestamp at which to run an offline check after the replay",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    try:
        samples = load_samples(args.samples)
    except (OSError, ValueError) as exc:
        print(f"Cannot load samples: {exc}", file=sys.stderr)
        return 1

    if args.email:
        settings.notifications.email.enabled = True
    if args.webhook_url:
        settings.notifications.webhook.enabled = True
    if args.push:
        settings.notifications.push.enabled = True

    rules = InMemoryRuleStore(default_rules(args.user, settings.alerting))
    events = InMemoryEventStore()
    preferences = InMemoryPreferenceStore(
        default_preference_factory(settings.notifications)
    )
    preferences.set_preference(build_preference(args))
    history = InMemoryHistoryStore()

    pipeline = create_alert_pipeline(
        settings,
        rules=rules,
        events=events,
        preferences=preferences,
        history=history,
        push_backend=LogPushBackend() if args.push else None,
    )

    devices: dict[str, Device] = {}
    for sample in samples:
        device = devices.get(sample.device_id) or Device(
            id=sample.device_id,
            owner_id=args.user,
            name=sample.device_id,
        )
        await pipeline.on_sample(sample, device)

        update: dict[str, object] = {"last_seen_at": sample.recorded_at}
        if sample.battery_level is not None:
            update["last_battery_level"] = sample.battery_level
            update["last_battery_at"] = sample.recorded_at
        devices[sample.device_id] = device.model_copy(update=update)

    if args.offline_check_at:
        now = as_utc(datetime.fromisoformat(args.offline_check_at))
        for device in devices.values():
            await pipeline.on_offline_check(device, now)

    await pipeline.close()

    report = {
        "samples": len(samples),
        "evaluation_failures": pipeline.evaluation_failures,
        "events": [e.model_dump(mode="json") for e in events.events],
        "history": [h.model_dump(mode="json") for h in history.entries],
    }
    print(json.dumps(report, indent=2))

    logger.info(
        "simulation_complete",
        samples=len(samples),
        events=len(events.events),
        notifications=len(history.entries),
    )
    return 0


def main() -> None:
    code = asyncio.run(run(parse_args()))
    sys.exit(code)


if __name__ == "__main__":
    main()
