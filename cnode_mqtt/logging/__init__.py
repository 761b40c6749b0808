"""
Structured Logging for cnode
============================

Bounded Context: Observability

This module provides JSON-structured logging shared by the capture,
envelope, publish and pipeline stages.

Design:
- JSON output, one object per line on stderr
- Typed events (enums prevent typos)
- Contextual metadata (topic, broker, restarts, etc.)
- Thread-safe

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function
    level_for_verbosity: Map -v count to a logging level

Example:
    >>> from cnode_mqtt.logging import create_logger, LogEvent
    >>> logger = create_logger("pipeline")
    >>> logger.info(
    ...     event=LogEvent.PIPELINE_STARTED,
    ...     message="Run started",
    ...     metadata={'node_id': '1'}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger, level_for_verbosity

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
    'level_for_verbosity',
]
