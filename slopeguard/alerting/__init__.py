"""
Alert creation and lifecycle.

Modules:
    dedup: (zone, severity) deduplication cache
    severity: 0-10 severity bands and per-tier alert text
    storage: Logged alert store wrapper
    manager: AlertManager orchestrating creation and resolution

Example:
    >>> from slopeguard.alerting import AlertManager, AlertStorage
    >>> manager = AlertManager(config.alerts, context.dedup, AlertStorage(store))
"""

from slopeguard.alerting.dedup import DedupCache, DedupEntry
from slopeguard.alerting.manager import AlertManager
from slopeguard.alerting.severity import SeverityClassifier
from slopeguard.alerting.storage import AlertStorage

__all__ = [
    "AlertManager",
    "AlertStorage",
    "DedupCache",
    "DedupEntry",
    "SeverityClassifier",
]
