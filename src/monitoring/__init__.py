"""
Monitoring for the issuance controller.

This package provides:
- Counters, gauges and histograms with Prometheus export
- Structured logging with JSON or console output
- Flask request logging middleware

Usage:
    from monitoring import metrics, get_logger

    metrics.increment("mints_total")
    logger = get_logger(__name__)
    logger.info("Mint executed", extra={"issuer": "0xabc"})
"""

from monitoring.logging import configure_logging, get_logger
from monitoring.metrics import MetricsCollector, metrics
from monitoring.middleware import setup_request_logging

__all__ = [
    "MetricsCollector",
    "metrics",
    "get_logger",
    "configure_logging",
    "setup_request_logging",
]
