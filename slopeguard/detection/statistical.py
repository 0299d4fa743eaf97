"""
Threshold-exceedance detection model.

Each monitored parameter contributes in proportion to how far it exceeds
its threshold, weighted per parameter. Worsening short-term trends add a
fixed penalty on top.
"""

from typing import List

from slopeguard.detection.base import DetectionModel, calculate_trend, clamp
from slopeguard.detection.window import ReadingWindow
from slopeguard.models.prediction import (
    ModelKind,
    PartialPrediction,
    RiskFactor,
    Significance,
    Trend,
)
from slopeguard.models.readings import MONITORED_PARAMETERS, SensorReading

# Factors contributing this many points or fewer are not reported
FACTOR_REPORT_THRESHOLD = 5.0
HIGH_SIGNIFICANCE = 20.0
MEDIUM_SIGNIFICANCE = 10.0

WORSENING_TREND_PENALTY = 10.0
TREND_MIN_HISTORY = 10

MAX_CONFIDENCE = 90.0


def significance_for(contribution: float) -> Significance:
    """Weight class of a factor's contribution."""
    if contribution > HIGH_SIGNIFICANCE:
        return Significance.HIGH
    if contribution > MEDIUM_SIGNIFICANCE:
        return Significance.MEDIUM
    return Significance.LOW


class StatisticalModel(DetectionModel):
    """
    Threshold-exceedance model.

    For each thresholded parameter:
        exceedance = max(0, (current - threshold) / threshold)
        contribution = exceedance * weight * 100

    Risk is the sum of contributions plus 10 per worsening monitored
    parameter, capped at 100. Confidence grows with history:
    min(90, 50 + 2 * len(window)).

    Example:
        >>> model = StatisticalModel(default_model_definitions()[0])
        >>> partial = model.score(reading, window)
        >>> [f.parameter for f in partial.factors]
        ['displacement', 'strain']
    """

    kind = ModelKind.STATISTICAL

    def score(self, reading: SensorReading, window: ReadingWindow) -> PartialPrediction:
        risk_score = 0.0
        factors: List[RiskFactor] = []

        for parameter, threshold in self.thresholds.items():
            current = reading.value(parameter)
            exceedance = max(0.0, (current - threshold) / threshold)
            contribution = exceedance * self.weights.get(parameter, 0.0) * 100
            risk_score += contribution

            if contribution > FACTOR_REPORT_THRESHOLD:
                factors.append(
                    RiskFactor(
                        parameter=parameter,
                        contribution=contribution,
                        trend=calculate_trend(window, parameter),
                        significance=significance_for(contribution),
                    )
                )

        risk_score += self.trend_adjustment(window)

        return PartialPrediction(
            model_id=self.model_id,
            risk_score=clamp(risk_score),
            confidence=self.confidence(window),
            factors=factors,
        )

    def trend_adjustment(self, window: ReadingWindow) -> float:
        """Fixed penalty for each monitored parameter with a worsening trend."""
        if len(window) < TREND_MIN_HISTORY:
            return 0.0
        worsening = sum(
            1
            for parameter in MONITORED_PARAMETERS
            if calculate_trend(window, parameter) == Trend.WORSENING
        )
        return worsening * WORSENING_TREND_PENALTY

    @staticmethod
    def confidence(window: ReadingWindow) -> float:
        """Confidence scales with history length."""
        return min(MAX_CONFIDENCE, 50.0 + len(window) * 2)

    def drift_thresholds(self, risk_score: float, learning_rate: float) -> None:
        """
        Nudge every threshold proportionally to (risk_score - 50) / 100.

        Only called from calibration. Scores above 50 raise thresholds,
        scores below lower them.
        """
        adjustment = learning_rate * (risk_score - 50.0) / 100.0
        for parameter in self.thresholds:
            self.thresholds[parameter] *= 1 + adjustment * 0.01
