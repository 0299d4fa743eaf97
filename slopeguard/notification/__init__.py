"""
Alert notification to field devices.

Modules:
    templates: Per-severity, per-channel message templates
    targeting: Recipient selection and eligibility rules
    tracker: Delivery records and the delivery state machine
    dispatcher: NotificationDispatcher fanning alerts out to devices
    channels: Channel providers (log, webhook)
"""

from slopeguard.notification.channels import (
    LoggingChannelProvider,
    WebhookChannelProvider,
    create_channel_providers,
)
from slopeguard.notification.dispatcher import NotificationDispatcher, create_dispatcher
from slopeguard.notification.targeting import ineligibility_reason, is_eligible, select_devices
from slopeguard.notification.templates import TEMPLATES, render, render_resolution, template_name
from slopeguard.notification.tracker import DeliveryTracker

__all__ = [
    "DeliveryTracker",
    "LoggingChannelProvider",
    "NotificationDispatcher",
    "TEMPLATES",
    "WebhookChannelProvider",
    "create_channel_providers",
    "create_dispatcher",
    "ineligibility_reason",
    "is_eligible",
    "render",
    "render_resolution",
    "select_devices",
    "template_name",
]
