"""
Channel provider contract.

Concrete provider protocols (FCM, SMS gateways, SMTP) sit behind this
boundary. A provider reports failure either by returning a result with
status FAILED or by raising; the dispatcher records both as a failed
delivery.
"""

from typing import Protocol

from slopeguard.models.delivery import ChannelSendResult, RenderedMessage
from slopeguard.models.devices import Device


class ChannelProvider(Protocol):
    """
    Protocol for notification channel providers.

    Any provider implementation must support this async method.
    """

    async def send(
        self,
        device: Device,
        message: RenderedMessage,
        template: str,
    ) -> ChannelSendResult:
        """
        Send a rendered message to a device.

        Args:
            device: Recipient device.
            message: Channel-specific rendered message.
            template: Name of the template the message was rendered from.

        Returns:
            ChannelSendResult: SENT (or DELIVERED) on success, FAILED otherwise.
        """
        ...
