"""
Notification dispatcher for fanning alerts out to field devices.

This module provides the NotificationDispatcher class which selects the
recipients of an alert, filters them by eligibility, renders the
severity's channel templates and sends one message per (device, channel)
through the channel providers.

Key Features:
    - Severity-based recipient selection and channel templates
    - Bounded concurrency with a per-send timeout
    - Exactly one delivery record per (device, channel) attempt
    - A failing provider never stops the other sends

Example:
    >>> dispatcher = NotificationDispatcher(
    ...     registry=registry,
    ...     tracker=DeliveryTracker(delivery_store),
    ...     channels=create_channel_providers(config),
    ...     config=config.notifications,
    ... )
    >>> deliveries = await dispatcher.dispatch(alert)
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from slopeguard.config.models import AppConfig, NotificationsConfig
from slopeguard.errors import InvalidTransitionError, PersistenceError
from slopeguard.interfaces.channel import ChannelProvider
from slopeguard.interfaces.stores import DeliveryStore, DeviceRegistry
from slopeguard.models.alerts import Alert
from slopeguard.models.delivery import DeliveryState, DeliveryStatus, RenderedMessage
from slopeguard.models.devices import Device, NotificationChannel
from slopeguard.notification.channels import create_channel_providers
from slopeguard.notification.targeting import ineligibility_reason, select_devices
from slopeguard.notification.templates import (
    RESOLUTION_TEMPLATE_NAME,
    render,
    render_resolution,
    template_name,
)
from slopeguard.notification.tracker import DeliveryTracker

logger = structlog.get_logger(__name__)

# (delivery record or None, persistence failure or None)
SendOutcome = Tuple[Optional[DeliveryStatus], Optional[PersistenceError]]


class NotificationDispatcher:
    """
    Fans alerts out to devices over push, SMS and email.

    Attributes:
        registry: Device registry used for recipient selection.
        tracker: Delivery tracker recording every attempt.
        channels: Provider per channel.
        config: Notification configuration.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        tracker: DeliveryTracker,
        channels: Dict[NotificationChannel, ChannelProvider],
        config: Optional[NotificationsConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.registry = registry
        self.tracker = tracker
        self.channels = channels
        self.config = config or NotificationsConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        logger.info(
            "notification_dispatcher_initialized",
            available_channels=[c.value for c in channels],
            severity_channels={
                s.value: [c.value for c in chs] for s, chs in self.config.severity_channels.items()
            },
            max_concurrency=self.config.max_concurrency,
            send_timeout_seconds=self.config.send_timeout_seconds,
        )

    async def dispatch(
        self,
        alert: Alert,
        target_device_ids: Optional[Sequence[str]] = None,
    ) -> List[DeliveryStatus]:
        """
        Send an alert to every eligible recipient.

        Args:
            alert: The Alert to dispatch.
            target_device_ids: Explicit recipients, overriding selection.

        Returns:
            List[DeliveryStatus]: One record per (device, channel) attempt.

        Raises:
            PersistenceError: If any delivery record could not be stored.
                Every other send is still attempted; the error carries
                the records that were stored.
        """
        candidates = await select_devices(
            self.registry,
            alert,
            self.config.adjacency,
            target_device_ids,
        )

        now = self.clock()
        recipients: List[Device] = []
        for device in candidates:
            reason = ineligibility_reason(device, alert.severity, now)
            if reason is not None:
                logger.debug(
                    "device_skipped",
                    alert_id=alert.alert_id,
                    device_id=device.device_id,
                    reason=reason,
                )
                continue
            recipients.append(device)

        if not recipients:
            logger.info(
                "no_eligible_devices",
                alert_id=alert.alert_id,
                zone_id=alert.zone_id,
                severity=alert.severity.value,
                candidates=len(candidates),
            )
            return []

        channels = self.config.severity_channels.get(alert.severity, [])
        messages: Dict[NotificationChannel, RenderedMessage] = {}
        jobs: List[Tuple[Device, NotificationChannel, RenderedMessage, str]] = []

        for device in recipients:
            for channel in channels:
                if not self._can_send(device, channel, alert.alert_id):
                    continue
                if channel not in messages:
                    messages[channel] = render(alert, channel)
                jobs.append(
                    (device, channel, messages[channel], template_name(alert.severity, channel))
                )

        deliveries = await self._fan_out(alert.alert_id, jobs)

        logger.info(
            "alert_dispatch_complete",
            alert_id=alert.alert_id,
            severity=alert.severity.value,
            recipients=len(recipients),
            deliveries=len(deliveries),
            failed=sum(1 for d in deliveries if d.status == DeliveryState.FAILED),
        )

        return deliveries

    async def dispatch_resolution(
        self,
        alert: Alert,
        target_device_ids: Optional[Sequence[str]] = None,
    ) -> List[DeliveryStatus]:
        """
        Push a resolution notice for an alert.

        Goes to the alert zone's active devices, or the targeted devices.
        Minimum severity and quiet hours do not apply.

        Raises:
            PersistenceError: If any delivery record could not be stored.
        """
        if target_device_ids:
            devices = []
            for device_id in target_device_ids:
                device = await self.registry.get_device(device_id)
                if device is not None:
                    devices.append(device)
        else:
            devices = await self.registry.get_devices_by_zone(alert.zone_id)

        message = render_resolution(alert)
        jobs = [
            (device, NotificationChannel.PUSH, message, RESOLUTION_TEMPLATE_NAME)
            for device in devices
            if device.is_active
            and self._can_send(device, NotificationChannel.PUSH, alert.alert_id)
        ]

        deliveries = await self._fan_out(alert.alert_id, jobs)

        logger.info(
            "resolution_dispatch_complete",
            alert_id=alert.alert_id,
            deliveries=len(deliveries),
        )
        return deliveries

    def _can_send(self, device: Device, channel: NotificationChannel, alert_id: str) -> bool:
        if channel not in device.preferences.channels_enabled:
            return False
        if not device.address_for(channel):
            logger.debug(
                "device_missing_address",
                alert_id=alert_id,
                device_id=device.device_id,
                channel=channel.value,
            )
            return False
        if channel not in self.channels:
            logger.warning(
                "channel_not_configured",
                alert_id=alert_id,
                channel=channel.value,
            )
            return False
        return True

    async def _fan_out(
        self,
        alert_id: str,
        jobs: Sequence[Tuple[Device, NotificationChannel, RenderedMessage, str]],
    ) -> List[DeliveryStatus]:
        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        outcomes: List[SendOutcome] = await asyncio.gather(
            *(
                self._send_one(alert_id, device, channel, message, template, semaphore)
                for device, channel, message, template in jobs
            )
        )

        deliveries = [d for d, _ in outcomes if d is not None]
        errors = [e for _, e in outcomes if e is not None]
        if errors:
            logger.error(
                "delivery_persistence_failed",
                alert_id=alert_id,
                failed_writes=len(errors),
                error=str(errors[0]),
            )
            raise PersistenceError(
                f"{len(errors)} delivery record(s) for alert {alert_id} could not be stored",
                record=deliveries,
                cause=errors[0],
            )
        return deliveries

    async def _send_one(
        self,
        alert_id: str,
        device: Device,
        channel: NotificationChannel,
        message: RenderedMessage,
        template: str,
        semaphore: asyncio.Semaphore,
    ) -> SendOutcome:
        async with semaphore:
            try:
                record = await self.tracker.record(alert_id, device.device_id, channel)
            except PersistenceError as e:
                return None, e

            timeout = self.config.send_timeout_seconds
            provider = self.channels[channel]
            error: Optional[str] = None
            try:
                result = await asyncio.wait_for(
                    provider.send(device, message, template),
                    timeout=timeout,
                )
                status, error = result.status, result.error
            except asyncio.TimeoutError:
                status, error = DeliveryState.FAILED, f"send timed out after {timeout:g}s"
            except Exception as e:
                status, error = DeliveryState.FAILED, str(e) or type(e).__name__

            try:
                updated = await self.tracker.update(
                    record.delivery_id,
                    status,
                    error_message=error,
                )
            except PersistenceError as e:
                return record.with_status(status, error_message=error), e
            except (KeyError, InvalidTransitionError) as e:
                # Only this pair is affected
                logger.warning(
                    "delivery_update_rejected",
                    delivery_id=record.delivery_id,
                    alert_id=alert_id,
                    device_id=device.device_id,
                    requested=status.value,
                    error=str(e),
                )
                return record.with_status(DeliveryState.FAILED, error_message=str(e)), None

            return updated, None


def create_dispatcher(
    config: AppConfig,
    registry: DeviceRegistry,
    delivery_store: DeliveryStore,
    channels: Optional[Dict[NotificationChannel, ChannelProvider]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> NotificationDispatcher:
    """
    Factory function to create a NotificationDispatcher.

    Args:
        config: Application configuration.
        registry: Device registry.
        delivery_store: Store for delivery records.
        channels: Providers per channel. Defaults to the providers built
            from configuration (webhooks where configured, log otherwise).
        clock: Time source for quiet-hours checks.

    Returns:
        NotificationDispatcher: A new dispatcher.
    """
    return NotificationDispatcher(
        registry=registry,
        tracker=DeliveryTracker(delivery_store),
        channels=channels if channels is not None else create_channel_providers(config),
        config=config.notifications,
        clock=clock,
    )
