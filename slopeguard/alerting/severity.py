"""
Severity classification on the 0-10 alerting scale.

Detection produces scores on 0-100; alerting works on 0-10. This module
owns the conversion, the severity bands and the per-tier alert text.

Example:
    >>> classifier = SeverityClassifier()
    >>> classifier.classify(classifier.to_alert_scale(82.0))
    <Severity.HIGH: 'high'>
"""

from typing import Dict, List, Optional

from slopeguard.config.models import SeverityThresholds
from slopeguard.models.alerts import Severity

MIN_PROBABILITY = 0.05
MAX_PROBABILITY = 0.95

MESSAGE_TEMPLATES: Dict[Severity, str] = {
    Severity.CRITICAL: (
        "CRITICAL ROCKFALL RISK detected in {zone_name}. Risk Score: {risk_score:.1f}/10. "
        "IMMEDIATE EVACUATION REQUIRED."
    ),
    Severity.HIGH: (
        "High rockfall risk detected in {zone_name}. Risk Score: {risk_score:.1f}/10. "
        "Restrict access to essential personnel only."
    ),
    Severity.MEDIUM: (
        "Elevated rockfall risk in {zone_name}. Risk Score: {risk_score:.1f}/10. "
        "Increase monitoring frequency."
    ),
    Severity.LOW: (
        "Low rockfall risk in {zone_name}. Risk Score: {risk_score:.1f}/10. "
        "Continue routine monitoring."
    ),
}

# (lower bound on the 0-10 scale, timeline), checked highest first
TIMELINES = (
    (9.0, "Immediate (0-15 minutes)"),
    (8.0, "Very Short (15-60 minutes)"),
    (7.0, "Short Term (1-6 hours)"),
    (6.0, "Medium Term (6-24 hours)"),
)
DEFAULT_TIMELINE = "Long Term (24+ hours)"

RECOMMENDED_ACTIONS: Dict[Severity, List[str]] = {
    Severity.CRITICAL: [
        "EVACUATE ALL PERSONNEL IMMEDIATELY",
        "Activate emergency response protocol",
        "Contact emergency services",
        "Establish safety perimeter (minimum 500m)",
        "Deploy emergency response team",
        "Notify mine management immediately",
    ],
    Severity.HIGH: [
        "Restrict access to essential personnel only",
        "Increase monitoring frequency to every 5 minutes",
        "Deploy additional sensors if available",
        "Prepare evacuation routes",
        "Alert emergency response team",
        "Review and update safety protocols",
    ],
    Severity.MEDIUM: [
        "Increase monitoring frequency to every 15 minutes",
        "Review safety procedures with personnel",
        "Check equipment and escape routes",
        "Consider reducing personnel in area",
        "Monitor weather conditions",
        "Prepare contingency plans",
    ],
    Severity.LOW: [
        "Maintain standard monitoring schedule",
        "Continue routine safety checks",
    ],
}


class SeverityClassifier:
    """
    Maps alert-scale risk scores to severities and alert text.

    Attributes:
        thresholds: Lower bounds of the medium, high and critical bands.
    """

    def __init__(self, thresholds: Optional[SeverityThresholds] = None) -> None:
        self.thresholds = thresholds or SeverityThresholds()

    @staticmethod
    def to_alert_scale(risk_score: float) -> float:
        """Convert a 0-100 detection score to the 0-10 alerting scale."""
        return risk_score / 10.0

    def classify(self, risk_score: float) -> Severity:
        """
        Band a 0-10 risk score.

        Example:
            >>> SeverityClassifier().classify(7.5)
            <Severity.HIGH: 'high'>
        """
        if risk_score >= self.thresholds.critical:
            return Severity.CRITICAL
        if risk_score >= self.thresholds.high:
            return Severity.HIGH
        if risk_score >= self.thresholds.medium:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def probability(risk_score: float) -> float:
        """Event probability for a 0-10 score, kept within [0.05, 0.95]."""
        return min(MAX_PROBABILITY, max(MIN_PROBABILITY, risk_score / 10.0))

    @staticmethod
    def message(zone_name: str, risk_score: float, severity: Severity) -> str:
        return MESSAGE_TEMPLATES[severity].format(zone_name=zone_name, risk_score=risk_score)

    @staticmethod
    def timeline(risk_score: float) -> str:
        for lower_bound, timeline in TIMELINES:
            if risk_score >= lower_bound:
                return timeline
        return DEFAULT_TIMELINE

    @staticmethod
    def recommended_actions(severity: Severity) -> List[str]:
        return list(RECOMMENDED_ACTIONS[severity])
