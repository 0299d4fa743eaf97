"""
Webhook channel provider.

Posts each rendered message as JSON to an HTTP endpoint, typically a push,
SMS or email gateway bridge.

Example:
    >>> provider = WebhookChannelProvider(
    ...     NotificationChannel.PUSH,
    ...     url="https://gateway.example.com/push",
    ... )
    >>> result = await provider.send(device, message, "critical_push")
    >>> await provider.close()
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp
import structlog

from slopeguard.errors import DeliveryError
from slopeguard.models.delivery import ChannelSendResult, DeliveryState, RenderedMessage
from slopeguard.models.devices import Device, NotificationChannel

logger = structlog.get_logger(__name__)


class WebhookChannelProvider:
    """
    Async HTTP provider for one channel.

    A response status of 400 or above is reported as a failed delivery.
    Transport errors and timeouts raise DeliveryError.

    Attributes:
        channel: Channel this provider serves.
        url: Endpoint receiving the JSON POST.
        timeout_seconds: Total request timeout.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        url: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.channel = channel
        self.url = url
        self.timeout_seconds = timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(
            "webhook_provider_initialized",
            channel=channel.value,
            url=url,
        )

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session is created."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": "slopeguard/1.0"},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("webhook_session_closed", channel=self.channel.value)

    def build_payload(
        self,
        device: Device,
        message: RenderedMessage,
        template: str,
    ) -> Dict[str, Any]:
        """JSON body posted for one message."""
        return {
            "channel": self.channel.value,
            "template": template,
            "device_id": device.device_id,
            "address": device.address_for(self.channel),
            "title": message.title,
            "subject": message.subject,
            "body": message.body,
            "sound": message.sound,
            "vibration_pattern": message.vibration_pattern,
        }

    async def send(
        self,
        device: Device,
        message: RenderedMessage,
        template: str,
    ) -> ChannelSendResult:
        """
        POST a message to the webhook.

        Returns:
            ChannelSendResult: SENT on a 2xx/3xx response, FAILED otherwise.

        Raises:
            DeliveryError: On connection errors or timeout.
        """
        session = await self._ensure_session()
        payload = self.build_payload(device, message, template)

        try:
            async with session.post(self.url, json=payload) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    logger.warning(
                        "webhook_send_rejected",
                        channel=self.channel.value,
                        device_id=device.device_id,
                        status=response.status,
                        error=error_text,
                    )
                    return ChannelSendResult(
                        status=DeliveryState.FAILED,
                        error=f"webhook returned {response.status}: {error_text}",
                    )

                logger.debug(
                    "webhook_send_accepted",
                    channel=self.channel.value,
                    device_id=device.device_id,
                    status=response.status,
                )
                return ChannelSendResult(
                    status=DeliveryState.SENT,
                    provider_message_id=response.headers.get("X-Message-Id"),
                )

        except aiohttp.ClientError as e:
            logger.error(
                "webhook_client_error",
                channel=self.channel.value,
                url=self.url,
                error=str(e),
            )
            raise DeliveryError(f"Webhook request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(
                "webhook_timeout",
                channel=self.channel.value,
                url=self.url,
                timeout=self.timeout_seconds,
            )
            raise DeliveryError(
                f"Webhook request timeout after {self.timeout_seconds}s"
            ) from e
