"""
Common base for detection models.

Every model scores the current reading against its zone window and
returns a PartialPrediction. The ensemble combiner iterates the active
models polymorphically.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from slopeguard.config.models import ModelDefinition
from slopeguard.detection.window import ReadingWindow
from slopeguard.models.prediction import ModelKind, PartialPrediction, Trend
from slopeguard.models.readings import SensorReading

# Relative change between the recent and prior means that counts as a trend
TREND_CHANGE_THRESHOLD = 0.1
TREND_SPAN = 5


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def calculate_trend(window: ReadingWindow, parameter: str) -> Trend:
    """
    Direction of a parameter: mean of the last 5 readings vs the 5 before.

    A relative change above +10% is worsening, below -10% improving.
    With fewer than 6 readings there is nothing to compare against and the
    trend is stable.

    Args:
        window: Zone reading window.
        parameter: Sensor parameter name.

    Returns:
        Trend: Direction of the parameter.
    """
    if len(window) < TREND_SPAN:
        return Trend.STABLE

    values = window.values(parameter, last=TREND_SPAN * 2)
    recent = values[-TREND_SPAN:]
    older = values[:-TREND_SPAN]
    if not older:
        return Trend.STABLE

    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)

    if older_avg == 0:
        if recent_avg > 0:
            return Trend.WORSENING
        if recent_avg < 0:
            return Trend.IMPROVING
        return Trend.STABLE

    change = (recent_avg - older_avg) / older_avg
    if change > TREND_CHANGE_THRESHOLD:
        return Trend.WORSENING
    if change < -TREND_CHANGE_THRESHOLD:
        return Trend.IMPROVING
    return Trend.STABLE


class DetectionModel(ABC):
    """
    Abstract detection model.

    Attributes:
        model_id: Unique model identifier.
        name: Human-readable name.
        accuracy: Historical accuracy (0-100), the model's ensemble weight.
        thresholds: Mutable copy of the configured thresholds.
        weights: Mutable copy of the configured weights.
        is_active: Whether the ensemble uses the model.
        last_trained: When calibration last ran.
    """

    kind: ModelKind

    def __init__(self, definition: ModelDefinition) -> None:
        if definition.kind != self.kind:
            raise ValueError(
                f"{type(self).__name__} cannot be built from a {definition.kind.value} definition"
            )
        self.model_id = definition.model_id
        self.name = definition.name
        self.accuracy = definition.accuracy
        self.thresholds: Dict[str, float] = dict(definition.thresholds)
        self.weights: Dict[str, float] = dict(definition.weights)
        self.is_active = definition.is_active
        self.last_trained: Optional[datetime] = None

    @abstractmethod
    def score(self, reading: SensorReading, window: ReadingWindow) -> PartialPrediction:
        """
        Score the current reading.

        Args:
            reading: Current reading, already appended to window.
            window: Zone reading window.

        Returns:
            PartialPrediction: Risk score (0-100), confidence and evidence.
        """

    def mark_trained(self, accuracy: float) -> None:
        """Record a calibration result."""
        self.accuracy = clamp(accuracy)
        self.last_trained = datetime.now(timezone.utc)

    def describe(self) -> Dict[str, Any]:
        """Snapshot of the model's current parameters."""
        return {
            "model_id": self.model_id,
            "name": self.name,
            "kind": self.kind.value,
            "accuracy": self.accuracy,
            "is_active": self.is_active,
            "thresholds": dict(self.thresholds),
            "weights": dict(self.weights),
            "last_trained": self.last_trained.isoformat() if self.last_trained else None,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model_id={self.model_id!r}, accuracy={self.accuracy})"
