"""
Delivery tracking.

This module provides the DeliveryTracker class which records one
DeliveryStatus per (alert, device, channel) send and enforces the delivery
state machine on every update.

State machine:
    pending -> sent -> delivered -> read   (forward only, skips allowed)
    pending | sent -> failed               (terminal)
    read                                   (terminal)

Example:
    >>> tracker = DeliveryTracker(InMemoryDeliveryStore())
    >>> record = await tracker.record(alert_id, device_id, NotificationChannel.PUSH)
    >>> record = await tracker.update(record.delivery_id, DeliveryState.SENT)
    >>> await tracker.update(record.delivery_id, DeliveryState.PENDING)
    Traceback (most recent call last):
    InvalidTransitionError: ...
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from slopeguard.errors import InvalidTransitionError, PersistenceError
from slopeguard.interfaces.stores import DeliveryStore
from slopeguard.models.delivery import DeliveryState, DeliveryStatus
from slopeguard.models.devices import NotificationChannel

logger = structlog.get_logger(__name__)


class DeliveryTracker:
    """
    Records delivery attempts and their state changes.

    Attributes:
        store: Backing DeliveryStore.
    """

    def __init__(self, store: DeliveryStore) -> None:
        self.store = store

    async def record(
        self,
        alert_id: str,
        device_id: str,
        channel: NotificationChannel,
        status: DeliveryState = DeliveryState.PENDING,
        error_message: Optional[str] = None,
    ) -> DeliveryStatus:
        """
        Create a delivery record.

        Raises:
            PersistenceError: If the store write fails. The error carries
                the record.
        """
        delivery = DeliveryStatus(
            alert_id=alert_id,
            device_id=device_id,
            channel=channel,
            status=status,
            error_message=error_message,
        )
        try:
            await self.store.create_delivery(delivery)
        except Exception as e:
            logger.error(
                "delivery_record_failed",
                delivery_id=delivery.delivery_id,
                alert_id=alert_id,
                device_id=device_id,
                error=str(e),
            )
            raise PersistenceError(
                f"Failed to record delivery {delivery.delivery_id}",
                record=delivery,
                cause=e,
            ) from e
        return delivery

    async def update(
        self,
        delivery_id: str,
        status: DeliveryState,
        error_message: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> DeliveryStatus:
        """
        Move a delivery to a new state.

        A same-state update is a no-op. Anything other than a forward move
        raises.

        Args:
            delivery_id: Delivery to update.
            status: Requested state.
            error_message: Failure detail, stored with the record.
            timestamp: Time of the change (defaults to utc now).

        Returns:
            DeliveryStatus: The record after the update.

        Raises:
            KeyError: If the delivery is unknown.
            InvalidTransitionError: If the move is backwards or leaves a
                terminal state.
            PersistenceError: If the store read or write fails.
        """
        try:
            current = await self.store.get_delivery(delivery_id)
        except Exception as e:
            logger.error("delivery_read_failed", delivery_id=delivery_id, error=str(e))
            raise PersistenceError(f"Failed to read delivery {delivery_id}", cause=e) from e
        if current is None:
            raise KeyError(f"Unknown delivery: {delivery_id}")

        if current.status == status:
            return current

        if not current.status.can_transition_to(status):
            logger.warning(
                "delivery_transition_rejected",
                delivery_id=delivery_id,
                current=current.status.value,
                requested=status.value,
            )
            raise InvalidTransitionError(delivery_id, current.status.value, status.value)

        timestamp = timestamp or datetime.now(timezone.utc)
        try:
            await self.store.update_delivery_status(
                delivery_id,
                status,
                error_message=error_message,
                timestamp=timestamp,
            )
        except Exception as e:
            logger.error(
                "delivery_update_failed",
                delivery_id=delivery_id,
                status=status.value,
                error=str(e),
            )
            raise PersistenceError(
                f"Failed to update delivery {delivery_id}",
                record=current,
                cause=e,
            ) from e

        updated = current.with_status(status, error_message=error_message, timestamp=timestamp)

        if status == DeliveryState.FAILED:
            logger.warning(
                "delivery_failed",
                delivery_id=delivery_id,
                alert_id=current.alert_id,
                device_id=current.device_id,
                channel=current.channel.value,
                error=error_message,
            )
        else:
            logger.debug(
                "delivery_status_updated",
                delivery_id=delivery_id,
                status=status.value,
            )

        return updated

    async def query(self, alert_id: str) -> List[DeliveryStatus]:
        """List an alert's delivery records in creation order."""
        return await self.store.get_deliveries_for_alert(alert_id)

    async def summarize(self, alert_id: str) -> Dict[str, Any]:
        """
        Count an alert's deliveries by status and by channel.

        Example:
            >>> await tracker.summarize(alert_id)
            {'total': 3, 'by_status': {'sent': 2, 'failed': 1}, 'by_channel': {...}}
        """
        deliveries = await self.query(alert_id)
        return {
            "total": len(deliveries),
            "by_status": dict(Counter(d.status.value for d in deliveries)),
            "by_channel": dict(Counter(d.channel.value for d in deliveries)),
        }
