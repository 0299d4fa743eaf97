"""
Shared Pydantic data models for the risk pipeline.

Modules:
    readings: Sensor readings and payload validation
    prediction: Detection model outputs and the fused prediction
    alerts: Severity scale, alert instances and operator requests
    devices: Field devices and notification preferences
    delivery: Delivery records and channel provider results

Example:
    >>> from slopeguard.models import SensorReading, PredictionResult
    >>> from slopeguard.models import Alert, Severity
"""

# Reading models
from slopeguard.models.readings import (
    MONITORED_PARAMETERS,
    SENSOR_PARAMETERS,
    SensorReading,
    parse_reading,
)

# Alert models
from slopeguard.models.alerts import (
    Alert,
    AlertResolution,
    AlertStatus,
    AlertType,
    ManualAlertRequest,
    Severity,
)

# Prediction models
from slopeguard.models.prediction import (
    HistoricalPattern,
    ModelKind,
    PartialPrediction,
    PredictionResult,
    RiskFactor,
    Significance,
    Trend,
)

# Device models
from slopeguard.models.devices import (
    Device,
    DeviceContact,
    NotificationChannel,
    NotificationPreferences,
    QuietHours,
)

# Delivery models
from slopeguard.models.delivery import (
    ChannelSendResult,
    DeliveryState,
    DeliveryStatus,
    RenderedMessage,
)

__all__ = [
    # Readings
    "MONITORED_PARAMETERS",
    "SENSOR_PARAMETERS",
    "SensorReading",
    "parse_reading",
    # Alerts
    "Alert",
    "AlertResolution",
    "AlertStatus",
    "AlertType",
    "ManualAlertRequest",
    "Severity",
    # Prediction
    "HistoricalPattern",
    "ModelKind",
    "PartialPrediction",
    "PredictionResult",
    "RiskFactor",
    "Significance",
    "Trend",
    # Devices
    "Device",
    "DeviceContact",
    "NotificationChannel",
    "NotificationPreferences",
    "QuietHours",
    # Delivery
    "ChannelSendResult",
    "DeliveryState",
    "DeliveryStatus",
    "RenderedMessage",
]
