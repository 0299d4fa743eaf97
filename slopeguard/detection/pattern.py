"""
Pattern-recognition detection model.

Matches the current reading against a library of historical failure
patterns via precursor predicates, scores window anomalies with z-scores,
and combines both with rate-of-change features.

Key Features:
    - Best-matching pattern above 0.7 supplies the predicted time to event
    - Best-matching pattern above 0.6 is reported by name
    - Anomaly score needs at least 20 readings (z-score warmup)
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from slopeguard.config.models import ModelDefinition
from slopeguard.detection.base import DetectionModel, clamp
from slopeguard.detection.window import ReadingWindow
from slopeguard.detection.zscore import ZScoreCalculator
from slopeguard.models.prediction import HistoricalPattern, ModelKind, PartialPrediction
from slopeguard.models.readings import MONITORED_PARAMETERS, SensorReading

logger = structlog.get_logger(__name__)

PATTERN_LIBRARY: Tuple[HistoricalPattern, ...] = (
    HistoricalPattern(
        name="Gradual_Displacement_Increase",
        frequency=0.3,
        severity=0.7,
        precursors=["increased_strain", "pore_pressure_buildup"],
        duration_hours=48,
    ),
    HistoricalPattern(
        name="Rainfall_Induced_Instability",
        frequency=0.25,
        severity=0.8,
        precursors=["high_rainfall", "soil_saturation", "increased_pore_pressure"],
        duration_hours=24,
    ),
    HistoricalPattern(
        name="Vibration_Triggered_Event",
        frequency=0.15,
        severity=0.9,
        precursors=["equipment_vibration", "blasting_activity", "structural_resonance"],
        duration_hours=6,
    ),
    HistoricalPattern(
        name="Temperature_Cycle_Fatigue",
        frequency=0.2,
        severity=0.6,
        precursors=["freeze_thaw_cycles", "thermal_expansion", "joint_degradation"],
        duration_hours=72,
    ),
    HistoricalPattern(
        name="Progressive_Failure",
        frequency=0.1,
        severity=1.0,
        precursors=[
            "multiple_parameter_escalation",
            "accelerating_displacement",
            "structural_damage",
        ],
        duration_hours=12,
    ),
)


def _multiple_parameter_escalation(reading: SensorReading) -> float:
    escalated = sum(
        (
            reading.displacement > 10,
            reading.strain > 600,
            reading.pore_pressure > 450,
        )
    )
    return 0.4 if escalated >= 2 else 0.0


# Precursor name -> match weight contributed by the current reading.
# Precursors without a sensor signal (e.g. blasting_activity) contribute 0.
PRECURSOR_CHECKS: Dict[str, Callable[[SensorReading], float]] = {
    "increased_strain": lambda r: 0.2 if r.strain > 500 else 0.0,
    "pore_pressure_buildup": lambda r: 0.2 if r.pore_pressure > 400 else 0.0,
    "high_rainfall": lambda r: 0.3 if r.rainfall > 25 else 0.0,
    "soil_saturation": lambda r: 0.2 if r.soil_moisture > 80 else 0.0,
    "equipment_vibration": lambda r: 0.3 if r.vibration > 5 else 0.0,
    "freeze_thaw_cycles": lambda r: 0.1 if abs(r.temperature) < 5 else 0.0,
    "multiple_parameter_escalation": _multiple_parameter_escalation,
}

PATTERN_EVENT_THRESHOLD = 0.7
PATTERN_REPORT_THRESHOLD = 0.6
ANOMALY_REPORT_THRESHOLD = 0.7
ANOMALY_NOTE = "Anomalous behavior detected"


def match_pattern(pattern: HistoricalPattern, reading: SensorReading) -> float:
    """
    Score how well a reading matches a pattern's precursors.

    Returns:
        float: Sum of precursor weights, capped at 1.0.
    """
    score = 0.0
    for precursor in pattern.precursors:
        check = PRECURSOR_CHECKS.get(precursor)
        if check is not None:
            score += check(reading)
    return min(1.0, score)


class PatternModel(DetectionModel):
    """
    Pattern-recognition model.

    Risk score:
        min(50, d_displacement * 10)
        + min(30, d_strain * 0.05)
        + min(20, d_pore_pressure * 0.1)
        + 30 * pattern_score
        + 40 * anomaly_score

    where d_x is the change from the previous reading. Clamped to [0, 100].
    Confidence is max(pattern_score, anomaly_score) * 100.
    """

    kind = ModelKind.PATTERN

    def __init__(
        self,
        definition: ModelDefinition,
        patterns: Optional[Sequence[HistoricalPattern]] = None,
        anomaly_min_samples: int = 20,
    ) -> None:
        super().__init__(definition)
        self.patterns: List[HistoricalPattern] = list(patterns or PATTERN_LIBRARY)
        self.zscore = ZScoreCalculator(min_samples=anomaly_min_samples)

    def best_match(self, reading: SensorReading) -> Tuple[Optional[HistoricalPattern], float]:
        """Highest-scoring pattern. Ties keep the earlier pattern."""
        best: Optional[HistoricalPattern] = None
        best_score = 0.0
        for pattern in self.patterns:
            score = match_pattern(pattern, reading)
            if best is None or score > best_score:
                best, best_score = pattern, score
        return best, best_score

    def anomaly_score(self, reading: SensorReading, window: ReadingWindow) -> float:
        """
        Window anomaly score from per-parameter z-scores.

        |z| > 3 adds 0.2 and |z| > 2 adds 0.1 per monitored parameter.
        Parameters with flat history are skipped. Capped at 1.0.
        """
        score = 0.0
        for parameter in MONITORED_PARAMETERS:
            zscore = self.zscore.calculate(reading.value(parameter), window.values(parameter))
            if zscore is None:
                continue
            magnitude = abs(zscore)
            if magnitude > 3:
                score += 0.2
            elif magnitude > 2:
                score += 0.1
        return min(1.0, score)

    @staticmethod
    def rate_features(reading: SensorReading, window: ReadingWindow) -> Dict[str, float]:
        """Change of displacement, strain and pore pressure since the previous reading."""
        previous = window.previous
        if previous is None:
            return {"displacement_rate": 0.0, "strain_rate": 0.0, "pressure_rate": 0.0}
        return {
            "displacement_rate": reading.displacement - previous.displacement,
            "strain_rate": reading.strain - previous.strain,
            "pressure_rate": reading.pore_pressure - previous.pore_pressure,
        }

    def score(self, reading: SensorReading, window: ReadingWindow) -> PartialPrediction:
        pattern, pattern_score = self.best_match(reading)
        anomaly = self.anomaly_score(reading, window)
        rates = self.rate_features(reading, window)

        risk_score = (
            min(50.0, rates["displacement_rate"] * 10)
            + min(30.0, rates["strain_rate"] * 0.05)
            + min(20.0, rates["pressure_rate"] * 0.1)
            + pattern_score * 30
            + anomaly * 40
        )

        time_to_event: Optional[float] = None
        patterns: List[str] = []
        if pattern is not None:
            if pattern_score > PATTERN_EVENT_THRESHOLD:
                time_to_event = pattern.duration_hours
            if pattern_score > PATTERN_REPORT_THRESHOLD:
                patterns.append(pattern.name)
        if anomaly > ANOMALY_REPORT_THRESHOLD:
            patterns.append(ANOMALY_NOTE)

        logger.debug(
            "pattern_model_scored",
            zone_id=reading.zone_id,
            best_pattern=pattern.name if pattern else None,
            pattern_score=pattern_score,
            anomaly_score=anomaly,
        )

        return PartialPrediction(
            model_id=self.model_id,
            risk_score=clamp(risk_score),
            confidence=clamp(max(pattern_score, anomaly) * 100),
            time_to_event_hours=time_to_event,
            patterns=patterns,
        )
