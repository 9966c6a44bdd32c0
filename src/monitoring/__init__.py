"""
Monitoring and metrics infrastructure for DropMint.

This package provides:
- Application metrics collection (counters, gauges, histograms)
- Structured logging with JSON output
- Request timing middleware for the HTTP API

Usage:
    from monitoring import metrics, get_logger

    metrics.increment("mints_total", labels={"currency": "native"})

    logger = get_logger("my_module")
    logger.info("Something happened", extra={"collection": "0x..."})
"""

from monitoring.logging import LoggingContext, configure_logging, get_logger
from monitoring.metrics import MetricsCollector, metrics
from monitoring.middleware import setup_request_logging

__all__ = [
    "MetricsCollector",
    "metrics",
    "get_logger",
    "configure_logging",
    "LoggingContext",
    "setup_request_logging",
]
