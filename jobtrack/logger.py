"""
Structured logging system for jobtrack.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for monitoring the HTTP interface and the store.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json

from .config import load_config


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks request, response and store-failure metrics.
    """

    def __init__(
        self,
        name: str = "jobtrack",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: JOBTRACK_LOG_DIR)
            enable_file: Write logs to file
            enable_console: Output logs to stderr
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()  # Remove existing handlers

        self._metrics_lock = threading.Lock()
        self.metrics = {
            "requests_served": 0,
            "protocol_errors": 0,
            "responses_by_status": {},
            "store_errors_by_operation": {},
        }

        # Console handler (stderr keeps CLI output on stdout clean)
        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        # File handler
        self.log_dir: Optional[Path] = None
        if enable_file:
            if log_dir is None:
                log_dir = load_config(env_file=False).log_dir
            self._add_file_handler(Path(log_dir))

    def _add_file_handler(self, log_dir: Path):
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f"jobtrack_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_formatter = logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)
        self.log_dir = log_dir

    def set_level(self, level: str):
        """Change the console threshold; the file handler keeps DEBUG."""
        for handler in self.logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(getattr(logging, level.upper()))

    def configure(self, level: Optional[str] = None, log_dir: Optional[Path] = None):
        """
        Apply settings that are only known once configuration is loaded.

        Args:
            level: Console log level
            log_dir: Directory the log file should live in; the current file
                handler is closed and replaced when it points elsewhere
        """
        if level is not None:
            self.set_level(level)
        if log_dir is None or Path(log_dir) == self.log_dir:
            return
        for handler in list(self.logger.handlers):
            if isinstance(handler, logging.FileHandler):
                self.logger.removeHandler(handler)
                handler.close()
        self._add_file_handler(Path(log_dir))

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
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_request(self):
        """Increment the served request counter."""
        with self._metrics_lock:
            self.metrics["requests_served"] += 1

    def record_response(self, status: int):
        """Count a written response by status code."""
        with self._metrics_lock:
            by_status = self.metrics["responses_by_status"]
            by_status[status] = by_status.get(status, 0) + 1

    def record_protocol_error(self):
        """Count a request that could not be parsed."""
        with self._metrics_lock:
            self.metrics["protocol_errors"] += 1

    def record_store_error(self, operation: str):
        """Count a failed store operation."""
        with self._metrics_lock:
            by_op = self.metrics["store_errors_by_operation"]
            by_op[operation] = by_op.get(operation, 0) + 1

    def get_metrics(self) -> dict:
        """Return current metrics, including the share of 2xx/3xx responses."""
        with self._metrics_lock:
            metrics_copy = self.metrics.copy()
            metrics_copy["responses_by_status"] = dict(self.metrics["responses_by_status"])
            metrics_copy["store_errors_by_operation"] = dict(self.metrics["store_errors_by_operation"])
        total = sum(metrics_copy["responses_by_status"].values())
        ok = sum(
            count for status, count in metrics_copy["responses_by_status"].items()
            if status < 400
        )
        metrics_copy["success_rate"] = round(ok / total, 3) if total else 0
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Server Session Metrics ===")
        self.info(f"Requests: {metrics['requests_served']} ({metrics['success_rate'] * 100:.1f}% success)")
        self.info(f"Protocol errors: {metrics['protocol_errors']}")

        if metrics["responses_by_status"]:
            self.info("Responses by status:")
            for status, count in sorted(metrics["responses_by_status"].items()):
                self.info(f"  {status}: {count}")

        if metrics["store_errors_by_operation"]:
            self.info("Store errors:")
            for operation, count in metrics["store_errors_by_operation"].items():
                self.info(f"  {operation}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobtrack",
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
