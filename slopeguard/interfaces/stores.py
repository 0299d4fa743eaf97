"""
Abstract base classes for pipeline collaborators.

The pipeline never talks to a database directly. Alerts, deliveries and the
device registry are reached through these contracts so any persistence
backend can be plugged in. In-memory implementations live in
slopeguard.storage.memory.

Example:
    >>> class PostgresAlertStore(AlertStore):
    ...     async def create_alert(self, alert: Alert) -> None:
    ...         await self._pool.execute(INSERT_ALERT, *alert_row(alert))
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from slopeguard.models.alerts import Alert
from slopeguard.models.delivery import DeliveryState, DeliveryStatus
from slopeguard.models.devices import Device


class AlertStore(ABC):
    """
    Persistent alert storage.

    Implementations raise whatever their backend raises. The alert manager
    wraps failures into PersistenceError.
    """

    @abstractmethod
    async def create_alert(self, alert: Alert) -> None:
        """
        Persist a newly created alert.

        Args:
            alert: The alert to store.
        """
        pass

    @abstractmethod
    async def update_alert(self, alert_id: str, fields: Dict[str, Any]) -> Optional[Alert]:
        """
        Update fields of a stored alert.

        Args:
            alert_id: Alert to update.
            fields: Field names mapped to new values.

        Returns:
            Optional[Alert]: The updated alert, or None if not found.
        """
        pass

    @abstractmethod
    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        """
        Fetch an alert by id.

        Returns:
            Optional[Alert]: The alert, or None if not found.
        """
        pass

    @abstractmethod
    async def list_active_alerts(self, zone_id: Optional[str] = None) -> List[Alert]:
        """
        List alerts that are not resolved.

        Args:
            zone_id: Restrict to one zone.
        """
        pass


class DeliveryStore(ABC):
    """Persistent delivery status storage."""

    @abstractmethod
    async def create_delivery(self, delivery: DeliveryStatus) -> None:
        """Persist a new delivery record."""
        pass

    @abstractmethod
    async def update_delivery_status(
        self,
        delivery_id: str,
        status: DeliveryState,
        error_message: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """
        Persist a status change.

        Implementations stamp sent_at, delivered_at or read_at according to
        the new status and store error_message when given.
        """
        pass

    @abstractmethod
    async def get_delivery(self, delivery_id: str) -> Optional[DeliveryStatus]:
        """Fetch a delivery record by id."""
        pass

    @abstractmethod
    async def get_deliveries_for_alert(self, alert_id: str) -> List[DeliveryStatus]:
        """List delivery records for an alert in creation order."""
        pass


class DeviceRegistry(ABC):
    """Registry of field devices."""

    @abstractmethod
    async def get_devices_by_zone(self, zone_id: str) -> List[Device]:
        """List devices assigned to a zone, active or not."""
        pass

    @abstractmethod
    async def get_all_active_devices(self) -> List[Device]:
        """List every active device regardless of zone."""
        pass

    @abstractmethod
    async def get_device(self, device_id: str) -> Optional[Device]:
        """Fetch a device by id."""
        pass
