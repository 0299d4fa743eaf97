"""
Notification delivery models.

Models:
    DeliveryState: Delivery lifecycle state with its transition rules
    DeliveryStatus: One (alert, device, channel) delivery record
    RenderedMessage: Channel-specific message produced from a template
    ChannelSendResult: Outcome reported by a channel provider
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from slopeguard.models.devices import NotificationChannel


class DeliveryState(str, Enum):
    """
    Delivery lifecycle state.

    pending -> sent -> delivered -> read moves forward only, and may skip
    ahead. failed is reachable from pending or sent. failed and read are
    terminal.
    """

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition is possible."""
        return not _ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: "DeliveryState") -> bool:
        """Check if moving to target is a legal forward transition."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: Dict[DeliveryState, FrozenSet[DeliveryState]] = {
    DeliveryState.PENDING: frozenset(
        {
            DeliveryState.SENT,
            DeliveryState.DELIVERED,
            DeliveryState.READ,
            DeliveryState.FAILED,
        }
    ),
    DeliveryState.SENT: frozenset(
        {DeliveryState.DELIVERED, DeliveryState.READ, DeliveryState.FAILED}
    ),
    DeliveryState.DELIVERED: frozenset({DeliveryState.READ}),
    DeliveryState.READ: frozenset(),
    DeliveryState.FAILED: frozenset(),
}


class DeliveryStatus(BaseModel):
    """
    Delivery record for one (alert, device, channel) send.

    Attributes:
        delivery_id: Unique identifier.
        alert_id: Alert being delivered.
        device_id: Target device.
        channel: Channel used.
        status: Current lifecycle state.
        delivery_attempts: Send attempts made (always 1, no automatic retry).
        error_message: Provider error or timeout description.
        created_at: When the record was created.
        sent_at: When the provider accepted the message.
        delivered_at: When delivery was confirmed.
        read_at: When the recipient opened the message.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    delivery_id: str = Field(default_factory=lambda: str(uuid4()))
    alert_id: str = Field(..., min_length=1)
    device_id: str = Field(..., min_length=1)
    channel: NotificationChannel
    status: DeliveryState = Field(default=DeliveryState.PENDING)
    delivery_attempts: int = Field(default=1, ge=1)
    error_message: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sent_at: Optional[datetime] = Field(default=None)
    delivered_at: Optional[datetime] = Field(default=None)
    read_at: Optional[datetime] = Field(default=None)

    def with_status(
        self,
        status: DeliveryState,
        error_message: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> "DeliveryStatus":
        """
        Return a copy moved to a new state, stamping the matching timestamp.

        Transition legality is enforced by the delivery tracker, not here.
        """
        now = timestamp or datetime.now(timezone.utc)
        update: Dict[str, object] = {"status": status}
        if status == DeliveryState.SENT:
            update["sent_at"] = now
        elif status == DeliveryState.DELIVERED:
            update["delivered_at"] = now
        elif status == DeliveryState.READ:
            update["read_at"] = now
        if error_message is not None:
            update["error_message"] = error_message
        return self.model_copy(update=update)


class RenderedMessage(BaseModel):
    """
    Channel-specific message produced from a severity template.

    Push messages use title/body/sound and, for critical alerts, carry the
    vibration pattern in the same record. SMS uses body only. Email uses
    subject/body.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    channel: NotificationChannel
    body: str
    title: Optional[str] = None
    subject: Optional[str] = None
    sound: Optional[str] = None
    vibration_pattern: List[int] = Field(default_factory=list)


class ChannelSendResult(BaseModel):
    """Outcome reported by a channel provider for one send."""

    model_config = {"frozen": True, "extra": "forbid"}

    status: DeliveryState
    error: Optional[str] = None
    provider_message_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Check if the provider accepted the message."""
        return self.status != DeliveryState.FAILED
