"""
Per-severity, per-channel notification templates.

Templates use str.format placeholders filled from Alert.template_context():
zone_name, risk_score, risk_probability, confidence, time_to_event,
timestamp, factors, recommended_actions and alert_id.

Example:
    >>> message = render(alert, NotificationChannel.SMS)
    >>> message.body.splitlines()[0]
    'CRITICAL ALERT - North Pit Wall'
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from slopeguard.models.alerts import Alert, Severity
from slopeguard.models.delivery import RenderedMessage
from slopeguard.models.devices import NotificationChannel


@dataclass(frozen=True)
class MessageTemplate:
    """One channel's template for one severity."""

    body: str
    title: Optional[str] = None
    subject: Optional[str] = None
    sound: Optional[str] = None
    vibration_pattern: List[int] = field(default_factory=list)


VIBRATION_PATTERNS: Dict[Severity, List[int]] = {
    Severity.CRITICAL: [200, 100, 200, 100, 200, 100, 200],
    Severity.HIGH: [300, 200, 300],
    Severity.MEDIUM: [200, 100, 200],
    Severity.LOW: [100, 50, 100],
}

_SMS_FOOTER = (
    "Risk Score: {risk_score}/10\n"
    "Probability: {risk_probability}%\n"
    "Confidence: {confidence}\n"
    "Time to event: {time_to_event}\n"
    "Time: {timestamp}\n"
)

_EMAIL_BODY = (
    "{headline} - {zone_name}\n"
    "\n"
    "Risk Score: {risk_score}/10\n"
    "Probability: {risk_probability}%\n"
    "Confidence: {confidence}\n"
    "Time to event: {time_to_event}\n"
    "Contributing factors: {factors}\n"
    "Detected: {timestamp}\n"
    "\n"
    "Recommended actions: {recommended_actions}\n"
    "\n"
    "Alert ID: {alert_id}\n"
)

TEMPLATES: Dict[Severity, Dict[NotificationChannel, MessageTemplate]] = {
    Severity.CRITICAL: {
        NotificationChannel.PUSH: MessageTemplate(
            title="CRITICAL ALERT: Immediate Action Required",
            body="Rockfall risk detected in {zone_name}. EVACUATE IMMEDIATELY!",
            sound="emergency.mp3",
            vibration_pattern=VIBRATION_PATTERNS[Severity.CRITICAL],
        ),
        NotificationChannel.SMS: MessageTemplate(
            body=(
                "CRITICAL ALERT - {zone_name}\n\nIMMEDIATE EVACUATION REQUIRED!\n\n"
                + _SMS_FOOTER
                + "\nThis is NOT a drill. Follow emergency protocols immediately.\n\n"
                "Alert ID: {alert_id}"
            ),
        ),
        NotificationChannel.EMAIL: MessageTemplate(
            subject="CRITICAL ROCKFALL ALERT - Immediate Evacuation Required - {zone_name}",
            body=_EMAIL_BODY.replace("{headline}", "CRITICAL ROCKFALL ALERT"),
        ),
    },
    Severity.HIGH: {
        NotificationChannel.PUSH: MessageTemplate(
            title="HIGH RISK ALERT: {zone_name}",
            body="Elevated rockfall risk detected. Restrict access to essential personnel.",
            sound="warning.mp3",
            vibration_pattern=VIBRATION_PATTERNS[Severity.HIGH],
        ),
        NotificationChannel.SMS: MessageTemplate(
            body=(
                "HIGH RISK ALERT - {zone_name}\n\nElevated rockfall risk detected.\n\n"
                + _SMS_FOOTER
                + "\nAction required: {recommended_actions}\n\nAlert ID: {alert_id}"
            ),
        ),
        NotificationChannel.EMAIL: MessageTemplate(
            subject="HIGH RISK ALERT - Enhanced Safety Protocols Required - {zone_name}",
            body=_EMAIL_BODY.replace("{headline}", "HIGH RISK ALERT"),
        ),
    },
    Severity.MEDIUM: {
        NotificationChannel.PUSH: MessageTemplate(
            title="MONITORING ALERT: {zone_name}",
            body="Increased monitoring recommended. Risk Score: {risk_score}/10",
            vibration_pattern=VIBRATION_PATTERNS[Severity.MEDIUM],
        ),
        NotificationChannel.SMS: MessageTemplate(
            body=(
                "MONITORING ALERT - {zone_name}\n\nIncreased monitoring recommended.\n\n"
                + _SMS_FOOTER
                + "\nRecommended actions: {recommended_actions}\n\nAlert ID: {alert_id}"
            ),
        ),
        NotificationChannel.EMAIL: MessageTemplate(
            subject="MONITORING ALERT - Enhanced Surveillance Required - {zone_name}",
            body=_EMAIL_BODY.replace("{headline}", "MONITORING ALERT"),
        ),
    },
    Severity.LOW: {
        NotificationChannel.PUSH: MessageTemplate(
            title="ADVISORY: {zone_name}",
            body="Low-level activity detected. Continue normal operations with awareness.",
            vibration_pattern=VIBRATION_PATTERNS[Severity.LOW],
        ),
        NotificationChannel.SMS: MessageTemplate(
            body=(
                "ADVISORY - {zone_name}\n\nLow-level rockfall activity detected.\n\n"
                + _SMS_FOOTER
                + "\nAlert ID: {alert_id}"
            ),
        ),
        NotificationChannel.EMAIL: MessageTemplate(
            subject="ADVISORY NOTICE - Low-Level Activity Detected - {zone_name}",
            body=_EMAIL_BODY.replace("{headline}", "ADVISORY"),
        ),
    },
}

RESOLUTION_TEMPLATE = MessageTemplate(
    title="ALL CLEAR: {zone_name}",
    body="Alert {alert_id} in {zone_name} has been resolved. {resolution_notes}",
)

RESOLUTION_TEMPLATE_NAME = "resolution_push"


def template_name(severity: Severity, channel: NotificationChannel) -> str:
    """Name a severity/channel template, e.g. "critical_push"."""
    return f"{severity.value}_{channel.value}"


def _fill(text: Optional[str], context: Dict[str, str]) -> Optional[str]:
    if text is None:
        return None
    return text.format(**context)


def render_template(
    template: MessageTemplate,
    channel: NotificationChannel,
    context: Dict[str, str],
) -> RenderedMessage:
    """Fill a template's placeholders."""
    return RenderedMessage(
        channel=channel,
        body=template.body.format(**context),
        title=_fill(template.title, context),
        subject=_fill(template.subject, context),
        sound=template.sound,
        vibration_pattern=list(template.vibration_pattern),
    )


def render(alert: Alert, channel: NotificationChannel) -> RenderedMessage:
    """
    Render the alert's severity template for a channel.

    Args:
        alert: Alert being notified.
        channel: Target channel.

    Returns:
        RenderedMessage: Filled-in message. Push messages carry the
        severity's vibration pattern.
    """
    return render_template(TEMPLATES[alert.severity][channel], channel, alert.template_context())


def render_resolution(alert: Alert) -> RenderedMessage:
    """Render the push resolution notice for an alert."""
    context = alert.template_context()
    context["resolution_notes"] = alert.resolution_notes or ""
    message = render_template(RESOLUTION_TEMPLATE, NotificationChannel.PUSH, context)
    return message.model_copy(update={"body": message.body.rstrip()})
