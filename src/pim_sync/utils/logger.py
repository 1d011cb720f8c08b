"""
Centralized logging configuration for PIM import operations.

This module provides structured logging with console and rotating file
handlers, plus small helpers that emit API-call and progress events with
an ``event_type`` so log files can be filtered after a batch run.
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "pim_sync"

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_file_for(log_file: Optional[str], command: str) -> Optional[str]:
    """Expand a ``{command}`` placeholder so each CLI can write its own file."""
    if not log_file:
        return None
    return log_file.replace("{command}", command)


def setup_logger(config, command: str) -> logging.Logger:
    """
    Configure package logging for one CLI command.

    Handlers are attached to the ``pim_sync`` logger so every module logger
    below it shares them; the returned logger is ``pim_sync.<command>``.

    Args:
        config: Import configuration carrying the ``log_*``, ``verbose`` and
            ``debug`` settings
        command: CLI command name, e.g. ``products`` or ``media``

    Returns:
        Logger for the command
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.handlers.clear()

    if config.debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, config.log_level.upper(), logging.INFO)
    package_logger.setLevel(level)

    detailed = config.verbose or config.debug
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(f"{command}-console")
    console_handler.setFormatter(logging.Formatter(
        fmt=DETAILED_FORMAT if detailed else CONSOLE_FORMAT,
        datefmt='%H:%M:%S'
    ))
    console_handler.setLevel(logging.DEBUG if config.debug else logging.INFO)
    package_logger.addHandler(console_handler)

    log_file = log_file_for(config.log_file, command)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=config.log_max_size,
            backupCount=config.log_backup_count,
            encoding='utf-8'
        )
        file_handler.set_name(f"{command}-file")
        file_handler.setFormatter(logging.Formatter(fmt=DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        file_handler.setLevel(logging.DEBUG)
        package_logger.addHandler(file_handler)

    package_logger.propagate = False

    return package_logger.getChild(command)


def get_logger(name: str) -> logging.Logger:
    """Logger below the package logger, sharing its handlers."""
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


class APICallLogger:
    """
    Structured logger for calls to external APIs.

    Emits requests, responses, rate-limit waits, throttling, retries and
    errors with an ``event_type`` in the record's extra fields.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize API call logger.

        Args:
            logger: Logger instance (creates default if None)
        """
        self.logger = logger or get_logger("pim_sync.api")

    def log_request(self, operation: str, cost: float, attempt: int) -> None:
        self.logger.debug(
            f"API Request: {operation} (cost ~{cost:g}, attempt {attempt})",
            extra={
                "event_type": "api_request",
                "operation": operation,
                "cost": cost,
                "attempt": attempt,
                "timestamp": _now(),
            }
        )

    def log_response(self, operation: str, response_time: float,
                     available: Optional[float] = None, **kwargs) -> None:
        """
        Log a successful API response.

        Args:
            operation: Operation name
            response_time: Response time in seconds
            available: Cost points available after the call, if reported
            **kwargs: Additional response data
        """
        message = f"API Response: {operation} ({response_time:.2f}s)"
        if available is not None:
            message += f" - {available:g} points available"

        self.logger.debug(
            message,
            extra={
                "event_type": "api_response",
                "operation": operation,
                "response_time": response_time,
                "available": available,
                "timestamp": _now(),
                **kwargs
            }
        )

    def log_rate_limit(self, wait_time: float, cost: float, operation: str = "") -> None:
        """
        Log a rate limiting wait.

        Args:
            wait_time: Time waited in seconds
            cost: Estimated cost the wait was made for
            operation: Operation name
        """
        if wait_time > 0:
            self.logger.info(
                f"Rate limit: waiting {wait_time:.2f}s before {operation or 'request'} (cost ~{cost:g})",
                extra={
                    "event_type": "rate_limit",
                    "wait_time": wait_time,
                    "cost": cost,
                    "operation": operation,
                    "timestamp": _now(),
                }
            )

    def log_throttled(self, delay: float, operation: str = "") -> None:
        self.logger.warning(
            f"Throttled by server, waiting {delay:.2f}s before retrying {operation or 'request'}",
            extra={
                "event_type": "throttled",
                "delay": delay,
                "operation": operation,
                "timestamp": _now(),
            }
        )

    def log_retry(self, attempt: int, max_attempts: int, delay: float,
                  error: str, **kwargs) -> None:
        """
        Log retry attempt.

        Args:
            attempt: Attempt number that failed
            max_attempts: Maximum number of attempts
            delay: Delay before retry in seconds
            error: Error that triggered retry
            **kwargs: Additional retry data
        """
        self.logger.warning(
            f"Retry {attempt}/{max_attempts} after {delay:.2f}s: {error}",
            extra={
                "event_type": "retry",
                "attempt": attempt,
                "max_attempts": max_attempts,
                "delay": delay,
                "error": error,
                "timestamp": _now(),
                **kwargs
            }
        )

    def log_error(self, error: Exception, context: str = "", **kwargs) -> None:
        """
        Log an error with context.

        Args:
            error: Exception that occurred
            context: Additional context about the error
            **kwargs: Additional error data
        """
        self.logger.error(
            f"Error {context}: {error}",
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "context": context,
                "timestamp": _now(),
                **kwargs
            }
        )


class ProgressLogger:
    """
    Logger for tracking import progress.

    Item counts are not known up front for lazily walked sources, so progress
    is reported as running totals.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, every: int = 25):
        """
        Initialize progress logger.

        Args:
            logger: Logger instance (creates default if None)
            every: Emit a progress line every N processed items
        """
        self.logger = logger or get_logger("pim_sync.progress")
        self.every = max(1, every)
        self.start_time: Optional[datetime] = None

    def start_operation(self, operation: str, source: str = "") -> None:
        self.start_time = datetime.now(timezone.utc)

        message = f"Starting {operation}"
        if source:
            message += f" from {source}"

        self.logger.info(
            message,
            extra={
                "event_type": "operation_start",
                "operation": operation,
                "source": source,
                "start_time": self.start_time.isoformat(),
            }
        )

    def log_progress(self, operation: str, processed: int, succeeded: int,
                     skipped: int, failed: int, current_item: str = "") -> None:
        """
        Log a progress update every ``self.every`` items.

        Args:
            operation: Operation name
            processed: Number of items processed so far
            succeeded: Items that succeeded
            skipped: Items that were skipped
            failed: Items that failed
            current_item: Identifier of the last processed item
        """
        if processed % self.every != 0:
            return

        message = (
            f"{operation}: {processed} processed "
            f"({succeeded} ok, {skipped} skipped, {failed} failed)"
        )
        if current_item:
            message += f" - {current_item}"

        self.logger.info(
            message,
            extra={
                "event_type": "progress",
                "operation": operation,
                "processed": processed,
                "succeeded": succeeded,
                "skipped": skipped,
                "failed": failed,
                "current_item": current_item,
                "timestamp": _now(),
            }
        )

    def complete_operation(self, operation: str, total_items: int,
                           success_count: int, error_count: int = 0,
                           skipped_count: int = 0) -> None:
        """
        Log operation completion.

        Args:
            operation: Operation name
            total_items: Total number of items processed
            success_count: Number of successful items
            error_count: Number of failed items
            skipped_count: Number of skipped items
        """
        duration = None
        if self.start_time:
            duration = (datetime.now(timezone.utc) - self.start_time).total_seconds()

        message = f"Completed {operation}: {success_count}/{total_items} successful"
        if skipped_count > 0:
            message += f", {skipped_count} skipped"
        if error_count > 0:
            message += f", {error_count} errors"
        if duration:
            message += f" (took {duration:.2f}s)"

        level = logging.INFO if error_count == 0 else logging.WARNING

        self.logger.log(
            level,
            message,
            extra={
                "event_type": "operation_complete",
                "operation": operation,
                "total_items": total_items,
                "success_count": success_count,
                "error_count": error_count,
                "skipped_count": skipped_count,
                "duration": duration,
                "timestamp": _now(),
            }
        )
