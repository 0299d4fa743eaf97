"""
Alert storage wrapper.

This module provides the AlertStorage class which fronts an AlertStore
implementation, logs every write and converts backend failures into
PersistenceError.

Example:
    >>> storage = AlertStorage(InMemoryAlertStore())
    >>> await storage.save(alert)
    >>> active = await storage.get_active_alerts("zone-1")
"""

from typing import Any, Dict, List, Optional

import structlog

from slopeguard.errors import PersistenceError
from slopeguard.interfaces.stores import AlertStore
from slopeguard.models.alerts import Alert

logger = structlog.get_logger(__name__)


class AlertStorage:
    """
    Logged access to the alert store.

    Attributes:
        store: Backing AlertStore.
    """

    def __init__(self, store: AlertStore) -> None:
        self.store = store

        logger.debug("alert_storage_initialized", store=type(store).__name__)

    async def save(self, alert: Alert) -> None:
        """
        Persist a new alert.

        Args:
            alert: The Alert to save.

        Raises:
            PersistenceError: If the store write fails. The error carries
                the alert that could not be saved.
        """
        try:
            await self.store.create_alert(alert)

            logger.info(
                "alert_saved",
                alert_id=alert.alert_id,
                zone_id=alert.zone_id,
                severity=alert.severity.value,
                alert_type=alert.alert_type.value,
            )

        except Exception as e:
            logger.error(
                "alert_save_failed",
                alert_id=alert.alert_id,
                zone_id=alert.zone_id,
                error=str(e),
            )
            raise PersistenceError(
                f"Failed to save alert {alert.alert_id}",
                record=alert,
                cause=e,
            ) from e

    async def update(self, alert_id: str, fields: Dict[str, Any]) -> Optional[Alert]:
        """
        Update fields of a stored alert.

        Returns:
            Optional[Alert]: The updated alert, or None if not found.

        Raises:
            PersistenceError: If the store write fails.
        """
        try:
            updated = await self.store.update_alert(alert_id, fields)
        except Exception as e:
            logger.error(
                "alert_update_failed",
                alert_id=alert_id,
                fields=sorted(fields),
                error=str(e),
            )
            raise PersistenceError(
                f"Failed to update alert {alert_id}",
                record=alert_id,
                cause=e,
            ) from e

        if updated is None:
            logger.warning("alert_not_found_for_update", alert_id=alert_id)
        return updated

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        try:
            return await self.store.get_alert(alert_id)
        except Exception as e:
            logger.error("get_alert_failed", alert_id=alert_id, error=str(e))
            raise PersistenceError(f"Failed to read alert {alert_id}", cause=e) from e

    async def get_active_alerts(self, zone_id: Optional[str] = None) -> List[Alert]:
        try:
            return await self.store.list_active_alerts(zone_id)
        except Exception as e:
            logger.error("get_active_alerts_failed", zone_id=zone_id, error=str(e))
            raise PersistenceError(
                f"Failed to list active alerts for {zone_id or 'all zones'}",
                cause=e,
            ) from e
