"""
Alert data models for the risk pipeline.

This module defines the severity scale shared by detection and alerting,
the alert instance with its lifecycle, and the request objects used to
resolve or manually raise alerts.

Models:
    Severity: Ordered risk tier (low < medium < high < critical)
    AlertStatus: Lifecycle status (active, acknowledged, resolved)
    AlertType: Origin of the alert (automatic, manual)
    Alert: Active or historical alert instance
    AlertResolution: Operator resolution details
    ManualAlertRequest: Operator-raised alert
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """
    Ordered risk tier.

    Used both as the detection engine's risk level and as the alert
    severity, so a single ordering governs banding, dispatch breadth and
    device filtering.

    Attributes:
        LOW: No action beyond routine monitoring. Never creates an alert.
        MEDIUM: Elevated risk, increase monitoring.
        HIGH: Restrict access, notify the zone and its neighbours.
        CRITICAL: Evacuate, broadcast to every active device.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric rank used for ordering comparisons (low=1 .. critical=4)."""
        return _SEVERITY_RANK[self]

    def at_least(self, other: "Severity") -> bool:
        """Check if this severity is the same as or above another."""
        return self.rank >= other.rank


_SEVERITY_RANK: Dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class AlertStatus(str, Enum):
    """Alert lifecycle status."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class AlertType(str, Enum):
    """Origin of an alert."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"


class Alert(BaseModel):
    """
    Active or historical alert instance.

    risk_score is on the alerting scale (0-10). Prediction context
    (confidence, time_to_event_hours, factors) is carried when the alert
    was raised from a detection result so notification templates can
    render it.

    Example:
        >>> alert = Alert(
        ...     zone_id="zone-3",
        ...     zone_name="East Wall",
        ...     severity=Severity.HIGH,
        ...     message="High rockfall risk detected in East Wall.",
        ...     risk_score=7.8,
        ...     risk_probability=0.78,
        ...     predicted_timeline="Short Term (1-6 hours)",
        ... )
    """

    model_config = {"extra": "forbid"}

    # Identification
    alert_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this alert instance",
    )
    zone_id: str = Field(..., description="Zone the alert was raised for", min_length=1)
    zone_name: str = Field(..., description="Human-readable zone name")

    # Classification
    severity: Severity = Field(..., description="Alert severity")
    status: AlertStatus = Field(
        default=AlertStatus.ACTIVE,
        description="Lifecycle status",
    )
    alert_type: AlertType = Field(
        default=AlertType.AUTOMATIC,
        description="Whether the alert was raised by the pipeline or an operator",
    )

    # Operator messaging
    message: str = Field(..., description="Operator-facing alert text")
    risk_score: float = Field(
        ...,
        description="Risk score on the 0-10 alerting scale",
        ge=0,
        le=10,
    )
    risk_probability: float = Field(
        ...,
        description="Event probability derived from the risk score",
        ge=0,
        le=1,
    )
    predicted_timeline: str = Field(..., description="Estimated time window to event")
    recommended_actions: List[str] = Field(
        default_factory=list,
        description="Fixed per-tier operator actions",
    )
    affected_personnel: int = Field(
        default=0,
        description="Personnel working in the zone",
        ge=0,
    )
    equipment_at_risk: List[str] = Field(
        default_factory=list,
        description="Equipment deployed in the zone",
    )

    # Prediction context
    confidence: Optional[float] = Field(
        default=None,
        description="Detection confidence (0-100) when raised from a prediction",
        ge=0,
        le=100,
    )
    time_to_event_hours: Optional[float] = Field(
        default=None,
        description="Predicted hours to event, if a failure pattern matched",
        ge=0,
    )
    factors: List[str] = Field(
        default_factory=list,
        description="Contributing parameters in descending contribution order",
    )

    # Lifecycle timestamps
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the alert was created",
    )
    acknowledged_at: Optional[datetime] = Field(
        default=None,
        description="When the alert was acknowledged",
    )
    resolved_at: Optional[datetime] = Field(
        default=None,
        description="When the alert was resolved",
    )
    resolution_notes: Optional[str] = Field(
        default=None,
        description="Operator notes recorded at resolution",
    )
    resolved_by: Optional[str] = Field(
        default=None,
        description="Operator who resolved the alert",
    )

    # Notification bookkeeping
    notifications_sent: int = Field(
        default=0,
        description="Delivery records produced for this alert",
        ge=0,
    )
    last_notification_at: Optional[datetime] = Field(
        default=None,
        description="When notifications were last dispatched",
    )

    @property
    def is_active(self) -> bool:
        """Check if the alert is not yet resolved."""
        return self.status != AlertStatus.RESOLVED

    @property
    def dedup_key(self) -> str:
        """Key under which the alert is deduplicated."""
        return f"{self.zone_id}-{self.severity.value}"

    def template_context(self) -> Dict[str, Any]:
        """Values available to notification template placeholders."""
        return {
            "alert_id": self.alert_id,
            "zone_name": self.zone_name,
            "risk_score": f"{self.risk_score:.1f}",
            "risk_probability": f"{self.risk_probability * 100:.0f}",
            "confidence": (
                f"{self.confidence:.0f}" if self.confidence is not None else "n/a"
            ),
            "time_to_event": (
                f"{self.time_to_event_hours:g} hours"
                if self.time_to_event_hours is not None
                else self.predicted_timeline
            ),
            "timestamp": self.created_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            "factors": ", ".join(self.factors) if self.factors else "none reported",
            "recommended_actions": "; ".join(self.recommended_actions[:3]),
        }

    def acknowledge(self, timestamp: Optional[datetime] = None) -> "Alert":
        """
        Mark the alert as acknowledged.

        Args:
            timestamp: Acknowledgment time, defaults to now.

        Returns:
            Alert: Updated alert with acknowledgment.
        """
        return self.model_copy(
            update={
                "status": AlertStatus.ACKNOWLEDGED,
                "acknowledged_at": timestamp or datetime.now(timezone.utc),
            }
        )

    def resolve(
        self,
        notes: Optional[str] = None,
        resolved_by: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> "Alert":
        """
        Resolve the alert.

        Args:
            notes: Resolution notes.
            resolved_by: Operator resolving the alert.
            timestamp: Resolution time, defaults to now.

        Returns:
            Alert: Updated alert with resolution.
        """
        return self.model_copy(
            update={
                "status": AlertStatus.RESOLVED,
                "resolved_at": timestamp or datetime.now(timezone.utc),
                "resolution_notes": notes,
                "resolved_by": resolved_by,
            }
        )


class AlertResolution(BaseModel):
    """
    Operator resolution details.

    Attributes:
        notes: Free-text resolution notes.
        resolved_by: Operator identifier.
        notify: Whether to push a resolution notice to the zone's devices.
        target_device_ids: Restrict the notice to these devices.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    notes: str = Field(default="", description="Resolution notes")
    resolved_by: Optional[str] = Field(default=None, description="Resolving operator")
    notify: bool = Field(default=False, description="Send a resolution notice")
    target_device_ids: List[str] = Field(
        default_factory=list,
        description="Restrict the resolution notice to these devices",
    )


class ManualAlertRequest(BaseModel):
    """
    Operator-raised alert.

    Manual alerts skip classification and deduplication and are always
    dispatched.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    zone_id: str = Field(..., min_length=1)
    severity: Severity = Field(...)
    risk_score: float = Field(..., ge=0, le=10)
    message: Optional[str] = Field(
        default=None,
        description="Overrides the per-tier message template",
    )
    target_device_ids: List[str] = Field(default_factory=list)
