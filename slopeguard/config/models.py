"""
Pydantic models for application configuration.

This module defines all configuration models that are validated when loading
YAML configuration files. Every section carries defaults so that
``AppConfig()`` is a complete, working configuration without any files.

Configuration files:
    - config/detection.yaml: Reading window and detection model definitions
    - config/alerts.yaml: Severity thresholds, deduplication and dispatch policy
    - config/notifications.yaml: Channel templates, adjacency and fan-out limits
    - config/zones.yaml: Zone names, personnel and equipment

Example:
    >>> from slopeguard.config.models import AppConfig
    >>> config = AppConfig()
    >>> config.alerts.thresholds.high
    7.5
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from slopeguard.models.alerts import Severity
from slopeguard.models.devices import NotificationChannel
from slopeguard.models.prediction import ModelKind
from slopeguard.models.readings import SENSOR_PARAMETERS


# =============================================================================
# ENUMS
# =============================================================================


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# DETECTION CONFIGURATION
# =============================================================================


class ModelDefinition(BaseModel):
    """
    Definition of one detection model.

    For statistical models, thresholds and weights are keyed by sensor
    parameter. For the hybrid model, weights are keyed by component
    (statistical, pattern, environmental).
    """

    model_config = {"frozen": True, "extra": "forbid", "protected_namespaces": ()}

    model_id: str = Field(..., description="Unique model identifier", min_length=1)
    name: str = Field(..., description="Human-readable model name")
    kind: ModelKind = Field(..., description="Model family")
    accuracy: float = Field(
        ...,
        description="Historical accuracy (0-100), used as ensemble weight",
        ge=0,
        le=100,
    )
    thresholds: Dict[str, float] = Field(default_factory=dict)
    weights: Dict[str, float] = Field(default_factory=dict)
    is_active: bool = Field(default=True)

    @model_validator(mode="after")
    def validate_statistical_thresholds(self) -> "ModelDefinition":
        """Statistical thresholds divide the reading, so they must be positive."""
        if self.kind == ModelKind.STATISTICAL:
            for parameter, threshold in self.thresholds.items():
                if parameter not in SENSOR_PARAMETERS:
                    raise ValueError(f"Unknown sensor parameter: {parameter}")
                if threshold <= 0:
                    raise ValueError(
                        f"Threshold for {parameter} must be positive, got {threshold}"
                    )
        return self


def default_model_definitions() -> List[ModelDefinition]:
    """Return the statistical, pattern and hybrid models used by default."""
    return [
        ModelDefinition(
            model_id="statistical-threshold",
            name="Statistical Threshold Model",
            kind=ModelKind.STATISTICAL,
            accuracy=85,
            thresholds={
                "displacement": 15.0,
                "strain": 800.0,
                "pore_pressure": 500.0,
                "vibration": 10.0,
                "tilt_angle": 5.0,
            },
            weights={
                "displacement": 0.25,
                "strain": 0.20,
                "pore_pressure": 0.20,
                "vibration": 0.15,
                "tilt_angle": 0.20,
            },
        ),
        ModelDefinition(
            model_id="pattern-recognition",
            name="Pattern Recognition Engine",
            kind=ModelKind.PATTERN,
            accuracy=92,
        ),
        ModelDefinition(
            model_id="hybrid-predictor",
            name="Hybrid Predictor",
            kind=ModelKind.HYBRID,
            accuracy=94,
            weights={
                "statistical": 0.3,
                "pattern": 0.4,
                "environmental": 0.3,
            },
        ),
    ]


class DetectionConfig(BaseModel):
    """Detection engine configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    window_size: int = Field(
        default=100,
        description="Readings retained per zone",
        ge=10,
        le=10000,
    )
    min_history: int = Field(
        default=10,
        description="Readings required before the ensemble replaces the basic predictor",
        ge=1,
    )
    anomaly_min_samples: int = Field(
        default=20,
        description="Readings required before z-score anomaly detection runs",
        ge=2,
    )
    learning_rate: float = Field(
        default=0.01,
        description="Threshold drift rate applied during calibration",
        ge=0,
        le=1,
    )
    models: List[ModelDefinition] = Field(default_factory=default_model_definitions)

    @model_validator(mode="after")
    def validate_window(self) -> "DetectionConfig":
        """The window must be able to hold the history the engine needs."""
        if self.window_size < self.min_history:
            raise ValueError(
                f"window_size ({self.window_size}) must be >= min_history ({self.min_history})"
            )
        ids = [m.model_id for m in self.models]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate model ids: {ids}")
        return self


# =============================================================================
# ALERT CONFIGURATION
# =============================================================================


class SeverityThresholds(BaseModel):
    """Severity bands on the 0-10 alerting scale."""

    model_config = {"frozen": True, "extra": "forbid"}

    medium: float = Field(default=6.0, ge=0, le=10)
    high: float = Field(default=7.5, ge=0, le=10)
    critical: float = Field(default=8.5, ge=0, le=10)

    @model_validator(mode="after")
    def validate_order(self) -> "SeverityThresholds":
        """Bands must be strictly increasing."""
        if not (self.medium < self.high < self.critical):
            raise ValueError(
                f"Thresholds must satisfy medium < high < critical, got "
                f"{self.medium}, {self.high}, {self.critical}"
            )
        return self


class DispatchPolicyConfig(BaseModel):
    """When alerts are dispatched after creation."""

    model_config = {"frozen": True, "extra": "forbid"}

    immediate_severities: List[Severity] = Field(
        default_factory=lambda: [Severity.HIGH, Severity.CRITICAL],
        description="Severities dispatched as soon as the alert is created",
    )
    deferred_flush_seconds: int = Field(
        default=900,
        description="Interval at which queued alerts of other severities are sent",
        ge=1,
    )


class AlertsConfig(BaseModel):
    """Alert manager configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    thresholds: SeverityThresholds = Field(default_factory=SeverityThresholds)
    dedup_window_seconds: int = Field(
        default=300,
        description="Window during which repeat (zone, severity) alerts are suppressed",
        ge=0,
    )
    cache_max_age_seconds: int = Field(
        default=3600,
        description="Age after which dedup entries are swept",
        ge=1,
    )
    sweep_interval_seconds: int = Field(
        default=300,
        description="Interval of the dedup cache sweep",
        ge=1,
    )
    dispatch: DispatchPolicyConfig = Field(default_factory=DispatchPolicyConfig)


# =============================================================================
# NOTIFICATION CONFIGURATION
# =============================================================================


def default_severity_channels() -> Dict[Severity, List[NotificationChannel]]:
    """Channels attempted for each severity."""
    return {
        Severity.CRITICAL: [
            NotificationChannel.PUSH,
            NotificationChannel.SMS,
            NotificationChannel.EMAIL,
        ],
        Severity.HIGH: [
            NotificationChannel.PUSH,
            NotificationChannel.SMS,
            NotificationChannel.EMAIL,
        ],
        Severity.MEDIUM: [NotificationChannel.PUSH, NotificationChannel.EMAIL],
        Severity.LOW: [NotificationChannel.PUSH],
    }


def default_adjacency() -> Dict[str, List[str]]:
    """Static zone adjacency used to widen high-severity notifications."""
    return {
        "zone-1": ["zone-2", "zone-3"],
        "zone-2": ["zone-1", "zone-4"],
        "zone-3": ["zone-1", "zone-5"],
        "zone-4": ["zone-2", "zone-6"],
        "zone-5": ["zone-3", "zone-6"],
        "zone-6": ["zone-4", "zone-5"],
    }


class NotificationsConfig(BaseModel):
    """Notification dispatcher configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    severity_channels: Dict[Severity, List[NotificationChannel]] = Field(
        default_factory=default_severity_channels,
    )
    adjacency: Dict[str, List[str]] = Field(default_factory=default_adjacency)
    max_concurrency: int = Field(
        default=50,
        description="Maximum concurrent channel sends per dispatch",
        ge=1,
        le=1000,
    )
    send_timeout_seconds: float = Field(
        default=10.0,
        description="Per-send timeout; expiry is recorded as a failed delivery",
        gt=0,
    )


class WebhookChannelConfig(BaseModel):
    """Optional webhook endpoint for a channel."""

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = Field(..., min_length=1)
    timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Webhooks must be HTTP(S)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Webhook URL must be http(s): {v}")
        return v


# =============================================================================
# ZONES
# =============================================================================


class ZoneConfig(BaseModel):
    """Static description of a monitored zone."""

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(..., min_length=1)
    affected_personnel: int = Field(default=0, ge=0)
    equipment_at_risk: List[str] = Field(default_factory=list)


# =============================================================================
# LOGGING
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(default=LogFormat.JSON)
    level: LogLevel = Field(default=LogLevel.INFO)


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class AppConfig(BaseModel):
    """
    Root application configuration.

    Example:
        >>> config = AppConfig()
        >>> config.get_zone_name("zone-9")
        'zone-9'
    """

    model_config = {"frozen": True, "extra": "forbid"}

    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    webhooks: Dict[NotificationChannel, WebhookChannelConfig] = Field(
        default_factory=dict,
        description="Channels delivered over HTTP webhooks instead of the log channel",
    )
    zones: Dict[str, ZoneConfig] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    log_level: Optional[LogLevel] = Field(
        default=None,
        description="Environment override of logging.level",
    )

    def get_zone(self, zone_id: str) -> ZoneConfig:
        """Return the zone description, or a bare one named after the id."""
        return self.zones.get(zone_id) or ZoneConfig(name=zone_id)

    def get_zone_name(self, zone_id: str) -> str:
        """Return the human-readable name of a zone."""
        return self.get_zone(zone_id).name

    @property
    def effective_log_level(self) -> LogLevel:
        """Log level after environment override."""
        return self.log_level or self.logging.level
