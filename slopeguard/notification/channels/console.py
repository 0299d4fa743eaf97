"""
Log-backed channel provider.

Writes each rendered message as a structured log event instead of calling
an external gateway. Used for every channel in development and whenever no
webhook is configured for a channel.

Example:
    >>> provider = LoggingChannelProvider(NotificationChannel.SMS)
    >>> result = await provider.send(device, message, "critical_sms")
    >>> result.status
    <DeliveryState.SENT: 'sent'>
"""

from uuid import uuid4

import structlog

from slopeguard.errors import DeliveryError
from slopeguard.models.delivery import ChannelSendResult, DeliveryState, RenderedMessage
from slopeguard.models.devices import Device, NotificationChannel

logger = structlog.get_logger(__name__)


class LoggingChannelProvider:
    """
    Channel provider that logs messages.

    Attributes:
        channel: Channel this provider serves.
    """

    def __init__(self, channel: NotificationChannel) -> None:
        self.channel = channel

    async def send(
        self,
        device: Device,
        message: RenderedMessage,
        template: str,
    ) -> ChannelSendResult:
        """
        Log a message for a device.

        Raises:
            DeliveryError: If the message is for a different channel.
        """
        if message.channel != self.channel:
            raise DeliveryError(
                f"{self.channel.value} provider cannot send {message.channel.value} messages"
            )

        message_id = str(uuid4())
        logger.info(
            "notification_sent",
            channel=self.channel.value,
            template=template,
            device_id=device.device_id,
            address=device.address_for(self.channel),
            title=message.title,
            subject=message.subject,
            body=message.body,
            vibration_pattern=message.vibration_pattern or None,
            provider_message_id=message_id,
        )

        return ChannelSendResult(status=DeliveryState.SENT, provider_message_id=message_id)
