"""
Long-running services.

Modules:
    base: setup_logging and the ServiceRunner lifecycle base class
    risk_pipeline: RiskPipelineService and its entry point
"""

from slopeguard.services.base import ServiceRunner, setup_logging

__all__ = [
    "ServiceRunner",
    "setup_logging",
]
