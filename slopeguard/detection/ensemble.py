"""
Ensemble combiner.

Fuses partial predictions from the active models into one PredictionResult:
an accuracy-weighted average risk score, the highest confidence, the
strongest factor per parameter, the union of matched patterns, and
recommendations derived from the resulting risk band.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

import structlog

from slopeguard.detection.base import clamp
from slopeguard.models.alerts import Severity
from slopeguard.models.prediction import (
    PartialPrediction,
    PredictionResult,
    RiskFactor,
    Significance,
)

logger = structlog.get_logger(__name__)

# (lower bound, band), checked highest first
RISK_BANDS: Tuple[Tuple[float, Severity], ...] = (
    (80.0, Severity.CRITICAL),
    (60.0, Severity.HIGH),
    (30.0, Severity.MEDIUM),
)

MAX_FACTORS = 5

TIER_RECOMMENDATIONS: Dict[Severity, List[str]] = {
    Severity.CRITICAL: [
        "IMMEDIATE ACTION REQUIRED: Evacuate personnel from zone",
        "Implement emergency response procedures",
        "Continuous monitoring with 5-minute intervals",
    ],
    Severity.HIGH: [
        "Increase monitoring frequency to hourly",
        "Restrict access to essential personnel only",
        "Prepare evacuation procedures",
    ],
    Severity.MEDIUM: [
        "Monitor closely with 4-hour intervals",
        "Review and update safety protocols",
    ],
    Severity.LOW: [
        "Maintain standard monitoring schedule",
        "Continue routine safety checks",
    ],
}

FACTOR_RECOMMENDATIONS: Dict[str, str] = {
    "displacement": "Address displacement concerns: Install additional anchoring systems",
    "strain": "High strain detected: Inspect structural integrity",
    "pore_pressure": "Elevated pore pressure: Implement drainage measures",
    "vibration": "Excessive vibration: Review blasting schedules and equipment operation",
}

PATTERN_RECOMMENDATIONS: Tuple[Tuple[str, str], ...] = (
    ("Rainfall", "Implement rain-related mitigation measures"),
    ("Progressive", "Urgent structural intervention required"),
)


def round_score(value: float) -> float:
    """Clamp to [0, 100] and round half-up to one decimal."""
    rounded = Decimal(repr(clamp(value))).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return float(rounded)


def classify_risk_level(risk_score: float) -> Severity:
    """
    Band a detection-scale risk score.

    >=80 critical, >=60 high, >=30 medium, otherwise low.
    """
    for lower_bound, level in RISK_BANDS:
        if risk_score >= lower_bound:
            return level
    return Severity.LOW


def consolidate_factors(factors: Iterable[RiskFactor]) -> List[RiskFactor]:
    """
    Keep the largest-magnitude factor per parameter.

    Returns:
        List[RiskFactor]: At most five factors, strongest first.
    """
    strongest: Dict[str, RiskFactor] = {}
    for factor in factors:
        current = strongest.get(factor.parameter)
        if current is None or abs(factor.contribution) > abs(current.contribution):
            strongest[factor.parameter] = factor
    ordered = sorted(strongest.values(), key=lambda f: abs(f.contribution), reverse=True)
    return ordered[:MAX_FACTORS]


def _unique(items: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)


def generate_recommendations(
    risk_level: Severity,
    factors: Iterable[RiskFactor],
    patterns: Iterable[str],
) -> List[str]:
    """
    Operator recommendations for a prediction.

    Tier actions first, then one action per high-significance factor with a
    known remedy, then pattern-keyword actions. Duplicates are dropped in
    order.
    """
    recommendations = list(TIER_RECOMMENDATIONS[risk_level])

    for factor in factors:
        if factor.significance == Significance.HIGH:
            action = FACTOR_RECOMMENDATIONS.get(factor.parameter)
            if action:
                recommendations.append(action)

    for pattern in patterns:
        for keyword, action in PATTERN_RECOMMENDATIONS:
            if keyword in pattern:
                recommendations.append(action)

    return _unique(recommendations)


class EnsembleCombiner:
    """
    Accuracy-weighted fusion of model outputs.

    risk_score = sum(score_i * w_i) / sum(w_i), with w_i = accuracy_i / 100.
    If every weight is zero the plain mean is used.

    Example:
        >>> combiner = EnsembleCombiner()
        >>> result = combiner.combine("zone-1", [(stat_partial, 85), (pattern_partial, 92)])
        >>> result.risk_level
        <Severity.MEDIUM: 'medium'>
    """

    def combine(
        self,
        zone_id: str,
        results: Sequence[Tuple[PartialPrediction, float]],
    ) -> PredictionResult:
        """
        Fuse partial predictions.

        Args:
            zone_id: Zone the predictions belong to.
            results: (partial prediction, model accuracy 0-100) pairs.

        Returns:
            PredictionResult: The fused prediction.

        Raises:
            ValueError: If results is empty.
        """
        if not results:
            raise ValueError("Cannot combine an empty set of model results")

        total_weight = sum(accuracy / 100.0 for _, accuracy in results)
        if total_weight > 0:
            weighted = sum(p.risk_score * (accuracy / 100.0) for p, accuracy in results)
            risk_score = weighted / total_weight
        else:
            risk_score = sum(p.risk_score for p, _ in results) / len(results)

        risk_score = round_score(risk_score)
        confidence = round_score(max(p.confidence for p, _ in results))

        time_to_event = next(
            (p.time_to_event_hours for p, _ in results if p.time_to_event_hours is not None),
            None,
        )

        all_factors = [f for p, _ in results for f in p.factors]
        patterns = _unique(name for p, _ in results for name in p.patterns)
        risk_level = classify_risk_level(risk_score)

        logger.debug(
            "ensemble_combined",
            zone_id=zone_id,
            risk_score=risk_score,
            risk_level=risk_level.value,
            models=[p.model_id for p, _ in results],
        )

        return PredictionResult(
            zone_id=zone_id,
            risk_score=risk_score,
            risk_level=risk_level,
            confidence=confidence,
            time_to_event_hours=time_to_event,
            factors=consolidate_factors(all_factors),
            patterns=patterns,
            recommendations=generate_recommendations(risk_level, all_factors, patterns),
            model_ids=[p.model_id for p, _ in results],
        )
