"""
Abstract interfaces for pipeline collaborators.

Modules:
    stores: AlertStore, DeliveryStore and DeviceRegistry ABCs
    channel: ChannelProvider protocol for push/SMS/email providers
"""

from slopeguard.interfaces.channel import ChannelProvider
from slopeguard.interfaces.stores import AlertStore, DeliveryStore, DeviceRegistry

__all__: list[str] = [
    "AlertStore",
    "ChannelProvider",
    "DeliveryStore",
    "DeviceRegistry",
]
