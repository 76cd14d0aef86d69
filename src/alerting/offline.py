"""Periodic sweep raising ``device_offline`` for devices that stopped reporting."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from src.alerting.pipeline import AlertPipeline
from src.core.types import Device

logger = structlog.get_logger(__name__)

# Returns the devices to check on each sweep.
DevicesFn = Callable[[], Awaitable[list[Device]]]


class OfflineSweeper:
    """Background task that runs the offline check over all devices.

    Usage::

        sweeper = OfflineSweeper(pipeline, devices_fn=device_repo.list_owned, interval_secs=60)
        await sweeper.start()
        # ...
        await sweeper.stop()
    """

    def __init__(
        self,
        pipeline: AlertPipeline,
        devices_fn: DevicesFn,
        interval_secs: float = 60.0,
    ) -> None:
        self._pipeline = pipeline
        self._devices_fn = devices_fn
        self._interval_secs = interval_secs
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def sweep_now(self) -> int:
        """Run one sweep immediately; return the number of devices checked."""
        devices = await self._devices_fn()
        for device in devices:
            if device.owner_id is None:
                continue
            await self._pipeline.on_offline_check(device)
        return len(devices)

    # ── Internal loop ───────────────────────────────────────────

    async def _loop(self) -> None:
        while self._running:
            try:
                checked = await self.sweep_now()
                logger.debug("offline_sweep_done", devices=checked)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("offline_sweep_error")
            await asyncio.sleep(self._interval_secs)
