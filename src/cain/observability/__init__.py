"""
Observability utilities for the CA injector.

This module provides metrics and structured logging capabilities for
production monitoring and troubleshooting.
"""

from .logging import setup_structured_logging
from .metrics import MetricsCollector, MetricsServer

__all__ = [
    "MetricsCollector",
    "MetricsServer",
    "setup_structured_logging",
]
