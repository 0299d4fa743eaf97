"""
Configuration management for the risk pipeline.

This module handles loading and validating configuration from YAML files.
All configuration is validated using Pydantic models.

Example:
    >>> from slopeguard.config import load_config
    >>> config = load_config("config")
    >>> config.alerts.dedup_window_seconds
    300
"""

from slopeguard.config.loader import ConfigLoadError, ConfigLoader, load_config
from slopeguard.config.models import (
    AlertsConfig,
    AppConfig,
    DetectionConfig,
    DispatchPolicyConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ModelDefinition,
    NotificationsConfig,
    SeverityThresholds,
    WebhookChannelConfig,
    ZoneConfig,
    default_model_definitions,
)

__all__ = [
    # Loader
    "ConfigLoadError",
    "ConfigLoader",
    "load_config",
    # Models
    "AlertsConfig",
    "AppConfig",
    "DetectionConfig",
    "DispatchPolicyConfig",
    "LogFormat",
    "LoggingConfig",
    "LogLevel",
    "ModelDefinition",
    "NotificationsConfig",
    "SeverityThresholds",
    "WebhookChannelConfig",
    "ZoneConfig",
    "default_model_definitions",
]
