"""
Monitoring context: the pipeline's shared mutable state.

Owns the per-zone reading windows, the alert dedup cache and the per-zone
locks that serialize access to both. One context lives for the lifetime of
a service and is passed into the detection engine and the alert manager.
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

import structlog

from slopeguard.alerting.dedup import DedupCache
from slopeguard.config.models import AppConfig
from slopeguard.detection.window import ReadingWindow

logger = structlog.get_logger(__name__)


class MonitoringContext:
    """
    Per-zone windows, dedup cache and zone locks.

    Zones are independent: no lock spans more than one zone.

    Example:
        >>> context = MonitoringContext.from_config(AppConfig())
        >>> async with context.lock_for("zone-1"):
        ...     context.window_for("zone-1").append(reading)
    """

    def __init__(
        self,
        window_size: int = 100,
        dedup_window_seconds: int = 300,
        cache_max_age_seconds: int = 3600,
    ) -> None:
        self.window_size = window_size
        self.windows: Dict[str, ReadingWindow] = {}
        self.dedup = DedupCache(
            window_seconds=dedup_window_seconds,
            max_age_seconds=cache_max_age_seconds,
        )
        self._locks: Dict[str, asyncio.Lock] = {}

    @classmethod
    def from_config(cls, config: AppConfig) -> "MonitoringContext":
        """Build a context sized from application configuration."""
        return cls(
            window_size=config.detection.window_size,
            dedup_window_seconds=config.alerts.dedup_window_seconds,
            cache_max_age_seconds=config.alerts.cache_max_age_seconds,
        )

    def window_for(self, zone_id: str) -> ReadingWindow:
        """Return the zone's window, creating it on first use."""
        window = self.windows.get(zone_id)
        if window is None:
            window = ReadingWindow(zone_id, capacity=self.window_size)
            self.windows[zone_id] = window
        return window

    def lock_for(self, zone_id: str) -> asyncio.Lock:
        """Return the zone's lock, creating it on first use."""
        lock = self._locks.get(zone_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[zone_id] = lock
        return lock

    @property
    def zone_ids(self) -> List[str]:
        """Zones with a reading window."""
        return list(self.windows)

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Evict stale dedup entries, one zone at a time under its lock.

        Returns:
            int: Number of entries evicted.
        """
        removed = 0
        for zone_id in sorted(self.dedup.zone_ids()):
            async with self.lock_for(zone_id):
                removed += self.dedup.sweep(now=now, zone_id=zone_id)

        if removed:
            logger.info("dedup_cache_swept", removed=removed, remaining=len(self.dedup))
        return removed

    def reset(self) -> None:
        """Drop all windows and cached alerts."""
        self.windows.clear()
        self.dedup.clear()
