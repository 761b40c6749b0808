"""
cnode MQTT Schemas
==================

Bounded Context: Data Structures

Immutable, typed data structures for the published payload and the
broker-facing request.

Design:
- Frozen dataclasses (immutability)
- Validation in __post_init__
- CBOR serialization for the envelope (cbor2)

Public API
----------
    Timestamp: UTC timestamp, YYYY-MM-DDTHH:MM:SSZ
    FrameEnvelope, build_envelope, EnvelopeError: the wire payload
    PublishRequest, LastWill, BrokerAddress: one publish operation
"""

from .common import Timestamp, utc_now
from .envelope import (
    ENVELOPE_KEYS,
    EnvelopeError,
    FrameEnvelope,
    build_envelope,
)
from .request import (
    QOS_AT_LEAST_ONCE,
    BrokerAddress,
    LastWill,
    PublishRequest,
)

__all__ = [
    # Common types
    'Timestamp',
    'utc_now',
    # Envelope
    'ENVELOPE_KEYS',
    'EnvelopeError',
    'FrameEnvelope',
    'build_envelope',
    # Request
    'QOS_AT_LEAST_ONCE',
    'BrokerAddress',
    'LastWill',
    'PublishRequest',
]
