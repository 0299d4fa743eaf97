"""
Deduplication cache for alert creation.

This module provides the DedupCache class which remembers the most recent
alert per (zone, severity) so repeat risk conditions within the dedup
window return the existing alert instead of creating a new one.

Key Features:
    - Keyed by "{zone_id}-{severity}"
    - Strictly younger than the window counts as a duplicate
    - Entries stay cached past the window until swept (default 1 hour)
    - Resolving an alert clears its entry

Example:
    >>> cache = DedupCache(window_seconds=300)
    >>> cache.put(alert, now)
    >>> cache.get("zone-1-high", now + timedelta(seconds=299)) is alert
    True
    >>> cache.get("zone-1-high", now + timedelta(seconds=301)) is None
    True
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog

from slopeguard.models.alerts import Alert

logger = structlog.get_logger(__name__)


@dataclass
class DedupEntry:
    """Cached alert and the time it was cached."""

    alert: Alert
    cached_at: datetime


class DedupCache:
    """
    Most recent alert per (zone, severity).

    Attributes:
        window_seconds: Age below which a cached alert suppresses creation.
        max_age_seconds: Age above which sweep() evicts an entry.
    """

    def __init__(self, window_seconds: int = 300, max_age_seconds: int = 3600) -> None:
        self.window_seconds = window_seconds
        self.max_age_seconds = max_age_seconds
        self._entries: Dict[str, DedupEntry] = {}

        logger.debug(
            "dedup_cache_initialized",
            window_seconds=window_seconds,
            max_age_seconds=max_age_seconds,
        )

    @staticmethod
    def key_for(zone_id: str, severity: str) -> str:
        """Build a dedup key."""
        return f"{zone_id}-{severity}"

    def get(self, key: str, now: Optional[datetime] = None) -> Optional[Alert]:
        """
        Return the cached alert if it is still inside the dedup window.

        Args:
            key: Dedup key.
            now: Current time (defaults to utc now).

        Returns:
            Optional[Alert]: The cached alert, or None if absent or expired.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        if now is None:
            now = datetime.now(timezone.utc)

        age = (now - entry.cached_at).total_seconds()
        if age < self.window_seconds:
            return entry.alert
        return None

    def put(self, alert: Alert, now: Optional[datetime] = None) -> None:
        """Cache an alert under its dedup key."""
        self._entries[alert.dedup_key] = DedupEntry(
            alert=alert,
            cached_at=now or datetime.now(timezone.utc),
        )

    def remove_alert(self, alert_id: str) -> bool:
        """
        Drop the entry holding a given alert.

        Returns:
            bool: True if an entry was removed.
        """
        for key, entry in list(self._entries.items()):
            if entry.alert.alert_id == alert_id:
                del self._entries[key]
                logger.debug("dedup_entry_cleared", key=key, alert_id=alert_id)
                return True
        return False

    def sweep(self, now: Optional[datetime] = None, zone_id: Optional[str] = None) -> int:
        """
        Evict entries older than max_age_seconds.

        Args:
            now: Current time (defaults to utc now).
            zone_id: Restrict the sweep to one zone's entries.

        Returns:
            int: Number of entries evicted.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        stale = [
            key
            for key, entry in self._entries.items()
            if (zone_id is None or entry.alert.zone_id == zone_id)
            and (now - entry.cached_at).total_seconds() > self.max_age_seconds
        ]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def zone_ids(self) -> set[str]:
        """Zones that currently have cached entries."""
        return {entry.alert.zone_id for entry in self._entries.values()}

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
