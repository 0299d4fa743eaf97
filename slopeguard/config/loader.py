"""
Configuration loader for YAML-based application configuration.

This module provides utilities to load and validate configuration from YAML
files. All configuration is validated using Pydantic models to ensure type
safety and catch configuration errors early.

Configuration files expected:
    - config/detection.yaml: Reading window and detection models
    - config/alerts.yaml: Severity thresholds, dedup and dispatch policy
    - config/notifications.yaml: Channel templates, adjacency, fan-out limits
    - config/zones.yaml: Zone names, personnel and equipment

Environment variables override:
    - SLOPEGUARD_CONFIG_PATH: Configuration directory (default: config)
    - LOG_LEVEL: Application log level

Example:
    >>> from slopeguard.config.loader import load_config
    >>> config = load_config("config")
    >>> print(config.alerts.thresholds.critical)
    8.5
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from slopeguard.config.models import (
    AlertsConfig,
    AppConfig,
    DetectionConfig,
    DispatchPolicyConfig,
    LoggingConfig,
    LogLevel,
    ModelDefinition,
    NotificationsConfig,
    SeverityThresholds,
    WebhookChannelConfig,
    ZoneConfig,
    default_adjacency,
    default_model_definitions,
    default_severity_channels,
)


class ConfigLoadError(Exception):
    """
    Raised when configuration loading fails.

    Attributes:
        message: Error message describing what went wrong.
        file_path: Path to the file that caused the error, if applicable.
        cause: Original exception that caused the error, if any.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(message)


class ConfigLoader:
    """
    Loads and validates application configuration from YAML files.

    Expects the following directory structure:
        config/
        ├── detection.yaml      - Reading window and detection models
        ├── alerts.yaml         - Severity thresholds and dispatch policy
        ├── notifications.yaml  - Channel templates and adjacency
        └── zones.yaml          - Zone descriptions

    Example:
        >>> loader = ConfigLoader("config")
        >>> config = loader.load()
        >>> print(sorted(config.zones))
        ['zone-1', 'zone-2', 'zone-3', 'zone-4', 'zone-5', 'zone-6']
    """

    def __init__(self, config_dir: Path | str = "config"):
        """
        Initialize config loader.

        Args:
            config_dir: Path to configuration directory (default: 'config').

        Raises:
            ConfigLoadError: If config directory does not exist.
        """
        self.config_dir = Path(config_dir)
        if not self.config_dir.exists():
            raise ConfigLoadError(
                f"Configuration directory not found: {self.config_dir}",
                file_path=self.config_dir,
            )
        if not self.config_dir.is_dir():
            raise ConfigLoadError(
                f"Configuration path is not a directory: {self.config_dir}",
                file_path=self.config_dir,
            )

    def _load_yaml(self, filename: str) -> Dict[str, Any]:
        """
        Load a YAML file from the config directory.

        Args:
            filename: Name of YAML file (e.g., 'alerts.yaml').

        Returns:
            Dict containing parsed YAML content.

        Raises:
            ConfigLoadError: If file not found, empty, or invalid YAML.
        """
        file_path = self.config_dir / filename
        if not file_path.exists():
            raise ConfigLoadError(
                f"Configuration file not found: {file_path}",
                file_path=file_path,
            )

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
                if data is None:
                    raise ConfigLoadError(
                        f"Configuration file is empty: {file_path}",
                        file_path=file_path,
                    )
                if not isinstance(data, dict):
                    raise ConfigLoadError(
                        f"Configuration file must contain a mapping: {file_path}",
                        file_path=file_path,
                    )
                return data
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML syntax in {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e
        except OSError as e:
            raise ConfigLoadError(
                f"Error reading {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e

    def _load_detection(self) -> DetectionConfig:
        """
        Load detection settings from detection.yaml.

        Returns:
            DetectionConfig object.

        Raises:
            ConfigLoadError: If validation fails or no models are configured.
        """
        data = self._load_yaml("detection.yaml")

        try:
            window_data = data.get("window", {})

            models: List[ModelDefinition] = []
            raw_models = data.get("models")
            if raw_models is None:
                models = default_model_definitions()
            else:
                for model_id, model_data in raw_models.items():
                    models.append(
                        ModelDefinition(
                            model_id=model_id,
                            name=model_data.get("name", model_id),
                            kind=model_data["kind"],
                            accuracy=model_data["accuracy"],
                            thresholds=model_data.get("thresholds", {}),
                            weights=model_data.get("weights", {}),
                            is_active=model_data.get("is_active", True),
                        )
                    )

            detection = DetectionConfig(
                window_size=window_data.get("size", 100),
                min_history=window_data.get("min_history", 10),
                anomaly_min_samples=data.get("anomaly", {}).get("min_samples", 20),
                learning_rate=data.get("learning_rate", 0.01),
                models=models,
            )

        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid detection configuration: {e}",
                file_path=self.config_dir / "detection.yaml",
                cause=e,
            ) from e
        except KeyError as e:
            raise ConfigLoadError(
                f"Missing required field in detection configuration: {e}",
                file_path=self.config_dir / "detection.yaml",
                cause=e,
            ) from e

        if not any(m.is_active for m in detection.models):
            raise ConfigLoadError(
                "No active detection models configured in detection.yaml",
                file_path=self.config_dir / "detection.yaml",
            )

        return detection

    def _load_alerts(self) -> AlertsConfig:
        """
        Load alert settings from alerts.yaml.

        Returns:
            AlertsConfig object.

        Raises:
            ConfigLoadError: If validation fails.
        """
        data = self._load_yaml("alerts.yaml")

        try:
            threshold_data = data.get("thresholds", {})
            thresholds = SeverityThresholds(
                medium=threshold_data.get("medium", 6.0),
                high=threshold_data.get("high", 7.5),
                critical=threshold_data.get("critical", 8.5),
            )

            dedup_data = data.get("dedup", {})
            dispatch_data = data.get("dispatch", {})
            dispatch = DispatchPolicyConfig(
                immediate_severities=dispatch_data.get(
                    "immediate_severities", ["high", "critical"]
                ),
                deferred_flush_seconds=dispatch_data.get("deferred_flush_seconds", 900),
            )

            return AlertsConfig(
                thresholds=thresholds,
                dedup_window_seconds=dedup_data.get("window_seconds", 300),
                cache_max_age_seconds=dedup_data.get("cache_max_age_seconds", 3600),
                sweep_interval_seconds=dedup_data.get("sweep_interval_seconds", 300),
                dispatch=dispatch,
            )

        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid alerts configuration: {e}",
                file_path=self.config_dir / "alerts.yaml",
                cause=e,
            ) from e

    def _load_notifications(self) -> tuple[NotificationsConfig, Dict[str, WebhookChannelConfig]]:
        """
        Load notification settings from notifications.yaml.

        Returns:
            Tuple of (NotificationsConfig, webhook configs keyed by channel).

        Raises:
            ConfigLoadError: If validation fails.
        """
        data = self._load_yaml("notifications.yaml")

        try:
            dispatch_data = data.get("dispatch", {})
            notifications = NotificationsConfig(
                severity_channels=data.get("severity_channels")
                or default_severity_channels(),
                adjacency=data.get("adjacency") or default_adjacency(),
                max_concurrency=dispatch_data.get("max_concurrency", 50),
                send_timeout_seconds=dispatch_data.get("send_timeout_seconds", 10.0),
            )

            # Parse webhooks
            webhooks: Dict[str, WebhookChannelConfig] = {}
            raw_webhooks = data.get("webhooks") or {}
            for channel_name, webhook_data in raw_webhooks.items():
                webhooks[channel_name] = WebhookChannelConfig(
                    url=webhook_data["url"],
                    timeout_seconds=webhook_data.get("timeout_seconds", 10.0),
                )

            return notifications, webhooks

        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid notifications configuration: {e}",
                file_path=self.config_dir / "notifications.yaml",
                cause=e,
            ) from e
        except KeyError as e:
            raise ConfigLoadError(
                f"Missing required field in notifications configuration: {e}",
                file_path=self.config_dir / "notifications.yaml",
                cause=e,
            ) from e

    def _load_zones(self) -> Dict[str, ZoneConfig]:
        """
        Load zone descriptions from zones.yaml.

        Returns:
            Dict of ZoneConfig keyed by zone id.

        Raises:
            ConfigLoadError: If validation fails.
        """
        data = self._load_yaml("zones.yaml")
        zones: Dict[str, ZoneConfig] = {}

        try:
            for zone_id, zone_data in (data.get("zones") or {}).items():
                zones[zone_id] = ZoneConfig(
                    name=zone_data["name"],
                    affected_personnel=zone_data.get("affected_personnel", 0),
                    equipment_at_risk=zone_data.get("equipment_at_risk", []),
                )
        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid zone configuration: {e}",
                file_path=self.config_dir / "zones.yaml",
                cause=e,
            ) from e
        except KeyError as e:
            raise ConfigLoadError(
                f"Missing required field in zone configuration: {e}",
                file_path=self.config_dir / "zones.yaml",
                cause=e,
            ) from e

        return zones

    def _load_logging(self) -> LoggingConfig:
        """Logging section is optional and lives in alerts.yaml."""
        logging_data = self._load_yaml("alerts.yaml").get("logging", {})
        try:
            return LoggingConfig(
                format=logging_data.get("format", "json"),
                level=logging_data.get("level", "INFO"),
            )
        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid logging configuration: {e}",
                file_path=self.config_dir / "alerts.yaml",
                cause=e,
            ) from e

    def _get_log_level(self) -> Optional[LogLevel]:
        """
        Get log level override from environment.

        Environment variables:
            - LOG_LEVEL: Log level (unset means use the file setting)

        Returns:
            LogLevel enum value, or None if unset or unrecognised.
        """
        level_str = os.getenv("LOG_LEVEL")
        if not level_str:
            return None
        try:
            return LogLevel(level_str.upper())
        except ValueError:
            return None

    def load(self) -> AppConfig:
        """
        Load and validate all configuration files.

        Returns:
            AppConfig: Validated application configuration.

        Raises:
            ConfigLoadError: If any configuration is invalid or missing.
        """
        try:
            detection = self._load_detection()
            alerts = self._load_alerts()
            notifications, webhooks = self._load_notifications()
            zones = self._load_zones()
            logging_config = self._load_logging()
            log_level = self._get_log_level()

            return AppConfig(
                detection=detection,
                alerts=alerts,
                notifications=notifications,
                webhooks=webhooks,
                zones=zones,
                logging=logging_config,
                log_level=log_level,
            )

        except ConfigLoadError:
            raise
        except ValidationError as e:
            raise ConfigLoadError(
                f"Configuration validation failed: {e}",
                cause=e,
            ) from e
        except Exception as e:
            raise ConfigLoadError(
                f"Unexpected error loading configuration: {e}",
                cause=e,
            ) from e


def load_config(config_dir: Optional[Path | str] = None) -> AppConfig:
    """
    Convenience function to load application configuration.

    Args:
        config_dir: Path to configuration directory. Defaults to
            $SLOPEGUARD_CONFIG_PATH, then 'config'.

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigLoadError: If configuration loading fails.

    Example:
        >>> from slopeguard.config import load_config
        >>> config = load_config()
        >>> config.get_zone_name("zone-1")
        'North Pit Wall'
    """
    if config_dir is None:
        config_dir = os.getenv("SLOPEGUARD_CONFIG_PATH", "config")
    loader = ConfigLoader(config_dir)
    return loader.load()
