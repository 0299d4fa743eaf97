"""
In-memory collaborator implementations.

Used by the service in development, and by tests. State lives in plain
dicts owned by each instance; nothing is shared between instances.

Example:
    >>> registry = InMemoryDeviceRegistry([device_a, device_b])
    >>> alerts = InMemoryAlertStore()
    >>> deliveries = InMemoryDeliveryStore()
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog

from slopeguard.interfaces.stores import AlertStore, DeliveryStore, DeviceRegistry
from slopeguard.models.alerts import Alert
from slopeguard.models.delivery import DeliveryState, DeliveryStatus
from slopeguard.models.devices import Device

logger = structlog.get_logger(__name__)


class InMemoryAlertStore(AlertStore):
    """Alert store backed by a dict keyed by alert id."""

    def __init__(self) -> None:
        self._alerts: Dict[str, Alert] = {}

    async def create_alert(self, alert: Alert) -> None:
        self._alerts[alert.alert_id] = alert

    async def update_alert(self, alert_id: str, fields: Dict[str, Any]) -> Optional[Alert]:
        alert = self._alerts.get(alert_id)
        if alert is None:
            return None
        updated = alert.model_copy(update=fields)
        self._alerts[alert_id] = updated
        return updated

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    async def list_active_alerts(self, zone_id: Optional[str] = None) -> List[Alert]:
        return [
            a
            for a in self._alerts.values()
            if a.is_active and (zone_id is None or a.zone_id == zone_id)
        ]

    def __len__(self) -> int:
        return len(self._alerts)


class InMemoryDeliveryStore(DeliveryStore):
    """Delivery store backed by a dict keyed by delivery id."""

    def __init__(self) -> None:
        self._deliveries: Dict[str, DeliveryStatus] = {}

    async def create_delivery(self, delivery: DeliveryStatus) -> None:
        self._deliveries[delivery.delivery_id] = delivery

    async def update_delivery_status(
        self,
        delivery_id: str,
        status: DeliveryState,
        error_message: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        delivery = self._deliveries.get(delivery_id)
        if delivery is None:
            raise KeyError(f"Unknown delivery: {delivery_id}")
        self._deliveries[delivery_id] = delivery.with_status(
            status, error_message=error_message, timestamp=timestamp
        )

    async def get_delivery(self, delivery_id: str) -> Optional[DeliveryStatus]:
        return self._deliveries.get(delivery_id)

    async def get_deliveries_for_alert(self, alert_id: str) -> List[DeliveryStatus]:
        return [d for d in self._deliveries.values() if d.alert_id == alert_id]

    def __len__(self) -> int:
        return len(self._deliveries)


class InMemoryDeviceRegistry(DeviceRegistry):
    """
    Device registry backed by a dict keyed by device id.

    Example:
        >>> registry = InMemoryDeviceRegistry()
        >>> registry.register(device)
        >>> await registry.get_devices_by_zone("zone-1")
    """

    def __init__(self, devices: Optional[Iterable[Device]] = None) -> None:
        self._devices: Dict[str, Device] = {}
        for device in devices or []:
            self.register(device)

    def register(self, device: Device) -> None:
        """Add or replace a device."""
        self._devices[device.device_id] = device
        logger.debug(
            "device_registered",
            device_id=device.device_id,
            zone=device.zone_assignment,
        )

    def unregister(self, device_id: str) -> bool:
        """Remove a device. Returns False if it was not registered."""
        return self._devices.pop(device_id, None) is not None

    async def get_devices_by_zone(self, zone_id: str) -> List[Device]:
        return [d for d in self._devices.values() if d.zone_assignment == zone_id]

    async def get_all_active_devices(self) -> List[Device]:
        return [d for d in self._devices.values() if d.is_active]

    async def get_device(self, device_id: str) -> Optional[Device]:
        return self._devices.get(device_id)

    def __len__(self) -> int:
        return len(self._devices)
