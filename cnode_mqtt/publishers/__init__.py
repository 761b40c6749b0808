"""
MQTT Publishers
==============

Bounded Context: Message Production

Design:
- BasePublisher: Abstract base with connection management
- FramePublisher: Delivers one envelope per run at QoS 1

Public API
----------
    BasePublisher: Abstract publisher (for custom publishers)
    FramePublisher: Single-shot envelope publisher
    PublishError: Raised on any broker-side failure
    ConnectionLost: Notification queued on unexpected disconnect
"""

from .base import BasePublisher, ConnectionLost, PublishError, default_client_factory
from .frame import FramePublisher

__all__ = [
    'BasePublisher',
    'ConnectionLost',
    'FramePublisher',
    'PublishError',
    'default_client_factory',
]
