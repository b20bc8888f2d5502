"""
Observability module - Logging and Metrics.
"""

from purchase_guard.observability.logging import get_logger, log_context, setup_logging
from purchase_guard.observability.metrics import ValidatorMetrics

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "ValidatorMetrics",
]
