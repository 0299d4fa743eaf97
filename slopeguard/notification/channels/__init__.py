"""
Notification channel providers.

Components:
    console: Structured-log provider, the development default
    webhook: JSON-over-HTTP provider backed by aiohttp

Example:
    >>> from slopeguard.notification.channels import create_channel_providers
    >>> providers = create_channel_providers(config)
    >>> await providers[NotificationChannel.PUSH].send(device, message, "high_push")
"""

from typing import Dict

from slopeguard.config.models import AppConfig
from slopeguard.interfaces.channel import ChannelProvider
from slopeguard.models.devices import NotificationChannel
from slopeguard.notification.channels.console import LoggingChannelProvider
from slopeguard.notification.channels.webhook import WebhookChannelProvider


def create_channel_providers(config: AppConfig) -> Dict[NotificationChannel, ChannelProvider]:
    """
    Build one provider per channel.

    Channels with a configured webhook get a WebhookChannelProvider, the
    rest log their messages.

    Args:
        config: Application configuration.

    Returns:
        Dict[NotificationChannel, ChannelProvider]: Provider per channel.
    """
    providers: Dict[NotificationChannel, ChannelProvider] = {}
    for channel in NotificationChannel:
        webhook = config.webhooks.get(channel)
        if webhook is not None:
            providers[channel] = WebhookChannelProvider(
                channel,
                url=webhook.url,
                timeout_seconds=webhook.timeout_seconds,
            )
        else:
            providers[channel] = LoggingChannelProvider(channel)
    return providers


__all__ = [
    "LoggingChannelProvider",
    "WebhookChannelProvider",
    "create_channel_providers",
]
