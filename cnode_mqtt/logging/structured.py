"""
Structured JSON Logger
=====================

Bounded Context: Observability Infrastructure

This module provides a structured logger that writes one JSON object per line.

Design:
- JSON output (compatible with journald / log aggregators)
- Thread-safe (uses standard logging module)
- Contextual metadata (component, topic, restarts, etc.)
- Type-safe events (LogEvent enum)

Example:
    >>> logger = StructuredLogger(component="capture")
    >>> logger.info(
    ...     event=LogEvent.CAPTURE_STALL,
    ...     message="Device timeout detected, restarting",
    ...     metadata={'restarts': 1}
    ... )

Output:
    {
        "timestamp": "2024-01-01T00:00:00.123456+00:00",
        "level": "INFO",
        "component": "capture",
        "event": "capture.stall",
        "message": "Device timeout detected, restarting",
        "metadata": {"restarts": 1}
    }
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from .events import LogEvent


class StructuredLogger:
    """
    JSON structured logger.

    Wraps Python's logging module with structured metadata support. Records
    go to stderr so stdout stays free for the caller.

    Attributes:
        component: Component name (e.g., "capture", "publisher")
        logger: Underlying Python logger instance

    Thread Safety:
        Thread-safe via Python's logging module. paho's network thread logs
        through the same instance.
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None
    ):
        """
        Initialize structured logger.

        Args:
            component: Component identifier (e.g., "pipeline")
            level: Logging level (default: INFO)
            logger_name: Custom logger name (default: cnode.<component>)
        """
        self.component = component
        self.logger_name = logger_name or f"cnode.{component}"
        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(level)

        # Configure JSON formatter if not already configured
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def _log(
        self,
        level: str,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Internal log method with structured format.

        Args:
            level: Log level name (DEBUG, INFO, WARNING, ERROR)
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
            exc_info: Exception for ERROR logs
        """
        log_level = getattr(logging, level)
        if not self.logger.isEnabledFor(log_level):
            return

        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level,
            'component': self.component,
            'event': event.value,
            'message': message,
        }

        if metadata:
            log_entry['metadata'] = metadata

        if exc_info:
            log_entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info)
            }

        # default=str keeps camera metadata (tuples, enums) loggable
        self.logger.log(log_level, json.dumps(log_entry, default=str))

    def debug(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log DEBUG level message."""
        self._log('DEBUG', event, message, metadata)

    def info(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log INFO level message.

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context

        Example:
            >>> logger.info(
            ...     event=LogEvent.MQTT_CONNECTED,
            ...     message="Connected to broker",
            ...     metadata={'broker': 'tcp://localhost:1883'}
            ... )
        """
        self._log('INFO', event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log WARNING level message.

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
        """
        self._log('WARNING', event, message, metadata)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log ERROR level message.

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
            exc_info: Exception instance, summarized under "exception"

        Example:
            >>> try:
            ...     build_envelope("", b"")
            ... except EnvelopeError as e:
            ...     logger.error(
            ...         event=LogEvent.SERIALIZATION_ERROR,
            ...         message="Failed to build envelope",
            ...         exc_info=e
            ...     )
        """
        self._log('ERROR', event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        """
        Change logging level dynamically.

        Args:
            level: New logging level (logging.DEBUG, INFO, WARNING, ERROR)
        """
        self.logger.setLevel(level)


class JSONFormatter(logging.Formatter):
    """
    Pass-through formatter for records emitted by StructuredLogger.

    The message is already a JSON document.
    """

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def level_for_verbosity(verbose: int) -> int:
    """
    Map a verbosity count to a logging level.

    0 → WARNING, 1 → INFO, 2 and above → DEBUG.
    """
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


# Convenience factory function
def create_logger(
    component: str,
    level: int = logging.INFO
) -> StructuredLogger:
    """
    Factory function to create configured StructuredLogger.

    Args:
        component: Component identifier
        level: Logging level (default: INFO)

    Returns:
        Configured StructuredLogger instance

    Example:
        >>> logger = create_logger("capture", level=logging.DEBUG)
    """
    return StructuredLogger(component=component, level=level)
