"""
Error taxonomy for the risk pipeline.

Insufficient history and duplicate suppression are deliberately absent:
the former routes to the basic predictor and the latter returns the cached
alert, neither is a failure.
"""

from typing import Any, List, Optional


class SlopeGuardError(Exception):
    """Base class for all pipeline errors."""


class InputError(SlopeGuardError):
    """
    Raised when a sensor reading is malformed or out of range.

    The reading is rejected for its zone and never reaches the window.

    Attributes:
        zone_id: Zone the reading was submitted for.
        details: Validation messages.
    """

    def __init__(
        self,
        message: str,
        zone_id: Optional[str] = None,
        details: Optional[List[str]] = None,
    ) -> None:
        self.zone_id = zone_id
        self.details = details or []
        super().__init__(message)


class ModelComputationError(SlopeGuardError):
    """Raised when a single detection model fails to score a reading."""

    def __init__(self, model_id: str, cause: Exception) -> None:
        self.model_id = model_id
        self.cause = cause
        super().__init__(f"Model {model_id} failed: {cause}")


class DeliveryError(SlopeGuardError):
    """
    Raised by channel providers when a send fails.

    The dispatcher converts it into a failed DeliveryStatus.
    """


class PersistenceError(SlopeGuardError):
    """
    Raised when an alert or delivery store read or write fails.

    Attributes:
        record: The alert, or list of deliveries, that could not be stored.
        cause: Original store exception.
        result: Outcome of the pipeline call that failed, set by the
            pipeline once every zone or send has been attempted.
    """

    def __init__(
        self,
        message: str,
        record: Any = None,
        cause: Optional[Exception] = None,
    ) -> None:
        self.record = record
        self.cause = cause
        self.result: Any = None
        super().__init__(message)


class InvalidTransitionError(SlopeGuardError):
    """Raised when a delivery status update would move the state machine backwards."""

    def __init__(self, delivery_id: str, current: str, requested: str) -> None:
        self.delivery_id = delivery_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Delivery {delivery_id} cannot move from {current} to {requested}"
        )


class AlertNotFoundError(SlopeGuardError):
    """Raised when an alert id is unknown to the alert store."""

    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")
