"""
Structured logging system for identisync.

Provides centralized logging with console and file destinations,
log levels, and metrics tracking for monitoring identity store traffic.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for the store queries issued during a run.
    """

    def __init__(
        self,
        name: str = "identisync",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = False,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()  # Remove existing handlers

        # Worker threads record metrics concurrently
        self._metrics_lock = threading.Lock()
        self.metrics = {
            "queries": 0,
            "queries_by_operation": {},
            "store_failures": 0,
            "errors_by_type": {},
            "retries": 0,
        }

        # Console handler
        if enable_console:
            self._console_handler = logging.StreamHandler(sys.stdout)
            self._console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            self._console_handler.setFormatter(console_formatter)
            self.logger.addHandler(self._console_handler)
        else:
            self._console_handler = None

        # File handler
        if enable_file:
            self.add_file_handler(log_dir)

    def add_file_handler(self, log_dir: Optional[Path] = None):
        """Also write every record (DEBUG and up) to logs/identisync_YYYYMMDD.log."""
        if log_dir is None:
            log_dir = Path("logs")
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f"identisync_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_formatter = logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)
        self.logger.setLevel(logging.DEBUG)
        return log_file

    def set_level(self, level: str):
        """Change the console verbosity."""
        lvl = getattr(logging, level.upper())
        if self._console_handler is not None:
            self._console_handler.setLevel(lvl)
        has_file = any(isinstance(h, logging.FileHandler) for h in self.logger.handlers)
        self.logger.setLevel(logging.DEBUG if has_file else lvl)

    def is_debug(self) -> bool:
        return self.logger.isEnabledFor(logging.DEBUG)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if not self.logger.isEnabledFor(level):
            return
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_query(self, operation: str):
        """Count one store round trip for an operation."""
        with self._metrics_lock:
            self.metrics["queries"] += 1
            by_op = self.metrics["queries_by_operation"]
            by_op[operation] = by_op.get(operation, 0) + 1

    def record_store_failure(self, operation: str, error_type: str):
        """Record a failed store call."""
        with self._metrics_lock:
            self.metrics["store_failures"] += 1
            key = f"{operation}:{error_type}"
            self.metrics["errors_by_type"][key] = self.metrics["errors_by_type"].get(key, 0) + 1

    def record_retry(self):
        with self._metrics_lock:
            self.metrics["retries"] += 1

    def get_metrics(self) -> dict:
        """Return a snapshot of current metrics."""
        with self._metrics_lock:
            return {
                "queries": self.metrics["queries"],
                "queries_by_operation": dict(self.metrics["queries_by_operation"]),
                "store_failures": self.metrics["store_failures"],
                "errors_by_type": dict(self.metrics["errors_by_type"]),
                "retries": self.metrics["retries"],
            }

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Store Metrics ===")
        self.info(f"Queries: {metrics['queries']} (retries: {metrics['retries']}, failures: {metrics['store_failures']})")

        if metrics["queries_by_operation"]:
            self.info("Queries by operation:")
            for operation, count in sorted(metrics["queries_by_operation"].items()):
                self.info(f"  {operation}: {count}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "identisync",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
