"""
Basic threshold predictor used while a zone has too little history.
"""

from typing import List, Tuple

from slopeguard.detection.ensemble import classify_risk_level, round_score
from slopeguard.models.prediction import PredictionResult, RiskFactor, Significance, Trend
from slopeguard.models.readings import SensorReading

# (parameter, threshold, points)
BASIC_THRESHOLDS: Tuple[Tuple[str, float, float], ...] = (
    ("displacement", 15.0, 30.0),
    ("strain", 800.0, 25.0),
)

BASIC_CONFIDENCE = 50.0
BASIC_PATTERN = "Insufficient historical data for pattern analysis"
BASIC_RECOMMENDATIONS = [
    "Collect more data for improved predictions",
    "Use threshold-based monitoring",
]


class BasicPredictor:
    """
    Fixed threshold table.

    displacement > 15 contributes 30 points and strain > 800 contributes 25.
    Confidence is always 50.

    Example:
        >>> BasicPredictor().predict("zone-1", reading).risk_score
        55.0
    """

    def predict(self, zone_id: str, reading: SensorReading) -> PredictionResult:
        risk_score = 0.0
        factors: List[RiskFactor] = []

        for parameter, threshold, points in BASIC_THRESHOLDS:
            if reading.value(parameter) > threshold:
                risk_score += points
                factors.append(
                    RiskFactor(
                        parameter=parameter,
                        contribution=points,
                        trend=Trend.STABLE,
                        significance=Significance.MEDIUM,
                    )
                )

        risk_score = round_score(risk_score)

        return PredictionResult(
            zone_id=zone_id,
            risk_score=risk_score,
            risk_level=classify_risk_level(risk_score),
            confidence=BASIC_CONFIDENCE,
            factors=factors,
            patterns=[BASIC_PATTERN],
            recommendations=list(BASIC_RECOMMENDATIONS),
            fallback=True,
        )
