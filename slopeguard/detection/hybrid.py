"""
Hybrid detection model.

Blends the statistical and pattern models with an environmental risk term
built from weather and ground conditions.
"""

from slopeguard.config.models import ModelDefinition
from slopeguard.detection.base import DetectionModel, clamp
from slopeguard.detection.pattern import PatternModel
from slopeguard.detection.statistical import StatisticalModel
from slopeguard.detection.window import ReadingWindow
from slopeguard.models.prediction import ModelKind, PartialPrediction
from slopeguard.models.readings import SensorReading

CUMULATIVE_RAIN_READINGS = 24

DEFAULT_HYBRID_WEIGHTS = {
    "statistical": 0.3,
    "pattern": 0.4,
    "environmental": 0.3,
}


def environmental_risk(reading: SensorReading, window: ReadingWindow) -> float:
    """
    Environmental risk points (0-100).

    Bands:
        rainfall > 50 mm/hr: +30, else rainfall > 25: +15
        rainfall summed over the last 24 readings > 100: +20
        |temperature| > 35 or temperature < -10: +10
        soil moisture > 90%: +15
        wind speed > 50: +10
    """
    risk = 0.0

    if reading.rainfall > 50:
        risk += 30
    elif reading.rainfall > 25:
        risk += 15

    if len(window) >= CUMULATIVE_RAIN_READINGS:
        if sum(window.values("rainfall", last=CUMULATIVE_RAIN_READINGS)) > 100:
            risk += 20

    if abs(reading.temperature) > 35 or reading.temperature < -10:
        risk += 10

    if reading.soil_moisture > 90:
        risk += 15

    if reading.wind_speed > 50:
        risk += 10

    return min(100.0, risk)


class HybridModel(DetectionModel):
    """
    Weighted blend of statistical, pattern and environmental risk.

    Factors come from the statistical component, time to event and
    patterns from the pattern component. Confidence is the higher of the
    two components.
    """

    kind = ModelKind.HYBRID

    def __init__(
        self,
        definition: ModelDefinition,
        statistical: StatisticalModel,
        pattern: PatternModel,
    ) -> None:
        super().__init__(definition)
        for component, weight in DEFAULT_HYBRID_WEIGHTS.items():
            self.weights.setdefault(component, weight)
        self.statistical = statistical
        self.pattern = pattern

    def score(self, reading: SensorReading, window: ReadingWindow) -> PartialPrediction:
        statistical = self.statistical.score(reading, window)
        pattern = self.pattern.score(reading, window)
        environmental = environmental_risk(reading, window)

        risk_score = (
            statistical.risk_score * self.weights["statistical"]
            + pattern.risk_score * self.weights["pattern"]
            + environmental * self.weights["environmental"]
        )

        return PartialPrediction(
            model_id=self.model_id,
            risk_score=clamp(risk_score),
            confidence=max(statistical.confidence, pattern.confidence),
            time_to_event_hours=pattern.time_to_event_hours,
            factors=statistical.factors,
            patterns=pattern.patterns,
        )
