"""
Risk pipeline service entry point.

This service is responsible for:
- Consuming sensor readings from an async source
- Scoring readings and raising alerts through the RiskPipeline
- Flushing deferred (non-immediate) alerts periodically
- Sweeping stale dedup entries periodically

Usage:
    python -m slopeguard.services.risk_pipeline < readings.jsonl

    Each input line is a JSON object with a "zone_id" key and the reading
    fields.

Environment Variables:
    LOG_LEVEL: Logging level (default: from alerts.yaml, else INFO)
    SLOPEGUARD_CONFIG_PATH: Path to config directory (default: config)
"""

import asyncio
import json
import os
import sys
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import structlog

from slopeguard.config.models import AppConfig
from slopeguard.errors import SlopeGuardError
from slopeguard.interfaces.channel import ChannelProvider
from slopeguard.interfaces.stores import AlertStore, DeliveryStore, DeviceRegistry
from slopeguard.models.devices import NotificationChannel
from slopeguard.pipeline import RiskPipeline, create_pipeline
from slopeguard.services.base import ServiceRunner, setup_logging

logger = structlog.get_logger(__name__)

ReadingSource = AsyncIterator[Tuple[str, Dict[str, Any]]]


async def stdin_reading_source() -> ReadingSource:
    """
    Yield (zone_id, payload) pairs from JSON lines on stdin.

    Blank lines are skipped; malformed lines are logged and skipped.
    """
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            return
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("reading_line_invalid", error=str(e), line=line[:200])
            continue
        if not isinstance(payload, dict) or not isinstance(payload.get("zone_id"), str):
            logger.warning("reading_line_invalid", error="expected an object with a zone_id", line=line[:200])
            continue
        zone_id = payload.pop("zone_id")
        yield zone_id, payload


class RiskPipelineService(ServiceRunner):
    """
    Long-running rockfall risk service.

    Attributes:
        pipeline: The wired RiskPipeline (after initialization).
        source: Async iterator of (zone_id, payload) readings. When None the
            service only runs its periodic tasks until shutdown.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[AppConfig] = None,
        source: Optional[ReadingSource] = None,
        registry: Optional[DeviceRegistry] = None,
        alert_store: Optional[AlertStore] = None,
        delivery_store: Optional[DeliveryStore] = None,
        channels: Optional[Dict[NotificationChannel, ChannelProvider]] = None,
    ) -> None:
        super().__init__(config_path, config)
        self.source = source
        self.registry = registry
        self.alert_store = alert_store
        self.delivery_store = delivery_store
        self.channels = channels
        self.pipeline: Optional[RiskPipeline] = None
        self.readings_processed = 0
        self.readings_rejected = 0
        self._tasks: List[asyncio.Task] = []

    @property
    def service_name(self) -> str:
        """Return service name."""
        return "risk-pipeline"

    async def _initialize(self) -> None:
        """Wire the pipeline."""
        if self.config is None:
            raise RuntimeError("Service not properly initialized")

        self.pipeline = create_pipeline(
            self.config,
            registry=self.registry,
            alert_store=self.alert_store,
            delivery_store=self.delivery_store,
            channels=self.channels,
        )

        self.logger.info(
            "pipeline_components_initialized",
            zones=sorted(self.config.zones),
            sweep_interval_seconds=self.config.alerts.sweep_interval_seconds,
            deferred_flush_seconds=self.config.alerts.dispatch.deferred_flush_seconds,
        )

    async def _run(self) -> None:
        """Consume readings while the periodic tasks run."""
        if self.pipeline is None or self.config is None:
            raise RuntimeError("Service not properly initialized")

        self._tasks = [
            asyncio.create_task(self._sweep_loop()),
            asyncio.create_task(self._flush_loop()),
        ]

        try:
            if self.source is None:
                await self.shutdown_event.wait()
            else:
                await self._consume(self.source)
        except asyncio.CancelledError:
            self.logger.info("reading_consumer_cancelled")

        for task in self._tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _consume(self, source: ReadingSource) -> None:
        if self.pipeline is None:
            raise RuntimeError("Service not properly initialized")
        async for zone_id, payload in source:
            if self.shutdown_event.is_set():
                break

            try:
                await self.pipeline.ingest(zone_id, payload)
                self.readings_processed += 1
            except SlopeGuardError as e:
                self.readings_rejected += 1
                self.logger.error(
                    "reading_processing_error",
                    zone_id=zone_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )

    async def _sweep_loop(self) -> None:
        """Periodically evict stale dedup entries."""
        if self.pipeline is None or self.config is None:
            raise RuntimeError("Service not properly initialized")
        interval = self.config.alerts.sweep_interval_seconds
        try:
            while not self.shutdown_event.is_set():
                await asyncio.sleep(interval)
                try:
                    await self.pipeline.sweep()
                except Exception as e:
                    self.logger.error("dedup_sweep_error", error=str(e))
        except asyncio.CancelledError:
            self.logger.debug("sweep_loop_cancelled")

    async def _flush_loop(self) -> None:
        """Periodically dispatch deferred alerts."""
        if self.pipeline is None or self.config is None:
            raise RuntimeError("Service not properly initialized")
        interval = self.config.alerts.dispatch.deferred_flush_seconds
        try:
            while not self.shutdown_event.is_set():
                await asyncio.sleep(interval)
                try:
                    await self.pipeline.flush_deferred()
                except Exception as e:
                    self.logger.error("deferred_flush_error", error=str(e))
        except asyncio.CancelledError:
            self.logger.debug("flush_loop_cancelled")

    async def _cleanup(self) -> None:
        """Flush queued alerts and close channel providers."""
        if self.pipeline is None:
            return

        try:
            await self.pipeline.flush_deferred()
        except SlopeGuardError as e:
            self.logger.error("final_flush_error", error=str(e))

        for provider in self.pipeline.dispatcher.channels.values():
            close = getattr(provider, "close", None)
            if close is not None:
                await close()

        self.logger.info(
            "cleanup_state",
            readings_processed=self.readings_processed,
            readings_rejected=self.readings_rejected,
            cached_alerts=len(self.pipeline.context.dedup),
        )


async def main() -> None:
    """Main entry point."""
    # Set up initial logging
    setup_logging()

    config_path = os.getenv("SLOPEGUARD_CONFIG_PATH", "config")

    logger.info(
        "risk_pipeline_service_starting",
        version="1.0.0",
        config_path=config_path,
    )

    service = RiskPipelineService(config_path=config_path, source=stdin_reading_source())
    try:
        await service.run()
    except Exception as e:
        logger.error("service_failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
