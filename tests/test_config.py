"""
Tests for YAML configuration loading.
"""

import shutil
from pathlib import Path

import pytest

from slopeguard.config import ConfigLoadError, ConfigLoader, LogLevel, load_config
from slopeguard.config.models import SeverityThresholds
from slopeguard.models.alerts import Severity
from slopeguard.models.devices import NotificationChannel

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config"


@pytest.fixture
def config_dir(tmp_path):
    """Writable copy of the repository configuration."""
    target = tmp_path / "config"
    shutil.copytree(REPO_CONFIG, target)
    return target


class TestRepositoryConfig:
    def setup_method(self):
        self.config = ConfigLoader(REPO_CONFIG).load()

    def test_zones(self):
        assert sorted(self.config.zones) == [f"zone-{i}" for i in range(1, 7)]
        assert self.config.get_zone_name("zone-1") == "North Pit Wall"
        assert self.config.get_zone("zone-1").affected_personnel == 12
        assert self.config.get_zone_name("zone-9") == "zone-9"

    def test_detection_models(self):
        detection = self.config.detection

        assert [m.model_id for m in detection.models] == [
            "statistical-threshold",
            "pattern-recognition",
            "hybrid-predictor",
        ]
        assert detection.window_size == 100
        assert detection.min_history == 10

    def test_alert_thresholds(self):
        thresholds = self.config.alerts.thresholds
        assert (thresholds.medium, thresholds.high, thresholds.critical) == (6.0, 7.5, 8.5)
        assert self.config.alerts.dedup_window_seconds == 300

    def test_notification_policy(self):
        notifications = self.config.notifications

        assert notifications.severity_channels[Severity.MEDIUM] == [
            NotificationChannel.PUSH,
            NotificationChannel.EMAIL,
        ]
        assert notifications.adjacency["zone-1"] == ["zone-2", "zone-3"]
        assert self.config.webhooks == {}


class TestLoaderErrors:
    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigLoadError):
            ConfigLoader(tmp_path / "nope")

    def test_missing_file(self, config_dir):
        (config_dir / "zones.yaml").unlink()

        with pytest.raises(ConfigLoadError) as exc_info:
            ConfigLoader(config_dir).load()

        assert exc_info.value.file_path == config_dir / "zones.yaml"

    def test_invalid_yaml(self, config_dir):
        (config_dir / "alerts.yaml").write_text("thresholds: [medium: 6\n")

        with pytest.raises(ConfigLoadError):
            ConfigLoader(config_dir).load()

    def test_empty_file(self, config_dir):
        (config_dir / "notifications.yaml").write_text("")

        with pytest.raises(ConfigLoadError):
            ConfigLoader(config_dir).load()

    def test_unordered_thresholds(self, config_dir):
        (config_dir / "alerts.yaml").write_text(
            "thresholds:\n  medium: 8.0\n  high: 7.5\n  critical: 8.5\n"
        )

        with pytest.raises(ConfigLoadError):
            ConfigLoader(config_dir).load()

    def test_missing_models_uses_defaults(self, config_dir):
        (config_dir / "detection.yaml").write_text("window:\n  size: 50\n")

        config = ConfigLoader(config_dir).load()

        assert config.detection.window_size == 50
        assert len(config.detection.models) == 3

    def test_all_models_inactive(self, config_dir):
        (config_dir / "detection.yaml").write_text(
            "models:\n"
            "  pattern-recognition:\n"
            "    kind: pattern\n"
            "    accuracy: 92\n"
            "    is_active: false\n"
        )

        with pytest.raises(ConfigLoadError):
            ConfigLoader(config_dir).load()


class TestEnvironment:
    def test_log_level_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = ConfigLoader(REPO_CONFIG).load()

        assert config.logging.level == LogLevel.INFO
        assert config.effective_log_level == LogLevel.DEBUG

    def test_unknown_log_level_ignored(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        assert ConfigLoader(REPO_CONFIG).load().effective_log_level == LogLevel.INFO

    def test_config_path_from_environment(self, monkeypatch, config_dir):
        (config_dir / "detection.yaml").write_text("window:\n  size: 25\n")
        monkeypatch.setenv("SLOPEGUARD_CONFIG_PATH", str(config_dir))

        assert load_config().detection.window_size == 25


def test_threshold_order_enforced():
    with pytest.raises(ValueError):
        SeverityThresholds(medium=7.0, high=7.0, critical=8.5)
