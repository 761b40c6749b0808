"""
cnode MQTT Communication Package
================================

Bounded Context: Payload and Delivery

This package builds the CBOR envelope for a captured frame and delivers it to
an MQTT broker with QoS 1.

Architecture:
- schemas/: Immutable data structures (envelope, publish request)
- publishers/: Single-shot broker client
- logging/: Structured JSON logging for observability

Public API
----------
Schemas:
    Timestamp, FrameEnvelope, build_envelope, EnvelopeError
    PublishRequest, LastWill, BrokerAddress

Publishers:
    FramePublisher, PublishError, ConnectionLost
    BasePublisher (for custom publishers)

Logging:
    LogEvent, StructuredLogger, create_logger

Example:
    >>> from cnode_mqtt import FramePublisher, PublishRequest, build_envelope, create_logger
    >>>
    >>> payload = build_envelope("1", jpeg_bytes)
    >>> request = PublishRequest(
    ...     broker_address="tcp://localhost:1883",
    ...     client_id="cnode-1",
    ...     topic="events/frame",
    ...     payload=payload
    ... )
    >>> FramePublisher(request, logger=create_logger("publisher")).publish_once()
"""

# Version
__version__ = "1.0.0"

# Schemas
from .schemas import (
    BrokerAddress,
    EnvelopeError,
    FrameEnvelope,
    LastWill,
    PublishRequest,
    Timestamp,
    build_envelope,
)

# Publishers
from .publishers import (
    BasePublisher,
    ConnectionLost,
    FramePublisher,
    PublishError,
)

# Logging
from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    # Version
    '__version__',
    # Schemas
    'BrokerAddress',
    'EnvelopeError',
    'FrameEnvelope',
    'LastWill',
    'PublishRequest',
    'Timestamp',
    'build_envelope',
    # Publishers
    'BasePublisher',
    'ConnectionLost',
    'FramePublisher',
    'PublishError',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
