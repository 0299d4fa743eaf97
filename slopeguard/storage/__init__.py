"""
Storage implementations for pipeline collaborators.

Modules:
    memory: In-memory alert store, delivery store and device registry
"""

from slopeguard.storage.memory import (
    InMemoryAlertStore,
    InMemoryDeliveryStore,
    InMemoryDeviceRegistry,
)

__all__ = [
    "InMemoryAlertStore",
    "InMemoryDeliveryStore",
    "InMemoryDeviceRegistry",
]
