"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable in log aggregators (Loki, CloudWatch Insights)

Event Naming Convention:
    <component>.<category>.<action>

    component: capture, envelope, mqtt, pipeline, error
    category: stall, publish, built
    action: success, failed, restarted

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.restarts
    | filter event = "capture.stall"
    | stats count() by bin(1d)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - capture.*: Camera device lifecycle
    - envelope.*: Payload construction
    - mqtt.*: MQTT broker interactions
    - pipeline.*: Run-level progress
    - error.*: Error conditions
    """

    # ========== Capture Events ==========
    CAPTURE_STARTED = "capture.started"
    """Camera device opened, configured and started."""

    CAPTURE_STALL = "capture.stall"
    """Device reported a stall (no frame within its own deadline)."""

    CAPTURE_RESTARTED = "capture.restarted"
    """Device stopped and started again after a stall."""

    CAPTURE_QUIT = "capture.quit"
    """Device was asked to quit before a frame arrived."""

    CAPTURE_FRAME_IGNORED = "capture.frame_ignored"
    """Completed request for a non-still stream was released."""

    CAPTURE_COMPLETE = "capture.complete"
    """Still frame captured and encoded."""

    CAPTURE_SAVED = "capture.saved"
    """Encoded still written to the local output file."""

    # ========== Envelope Events ==========
    ENVELOPE_BUILT = "envelope.built"
    """Envelope serialized to CBOR."""

    # ========== MQTT Events ==========
    MQTT_CONNECTING = "mqtt.connecting"
    """Connection to broker requested."""

    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection closed on request."""

    MQTT_CONNECTION_LOST = "mqtt.connection_lost"
    """MQTT broker connection lost without a disconnect request."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message acknowledged by broker."""

    MQTT_DELIVERY_COMPLETE = "mqtt.delivery_complete"
    """Broker acknowledged a message id."""

    # ========== Pipeline Events ==========
    CONFIG_LOADED = "pipeline.config_loaded"
    """Effective configuration resolved."""

    PIPELINE_STARTED = "pipeline.started"
    """Run started."""

    PIPELINE_COMPLETE = "pipeline.complete"
    """Run finished successfully."""

    # ========== Error Events ==========
    CAPTURE_ERROR = "error.capture"
    """Capture failed (unrecognized event, restart ceiling, device error)."""

    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize the envelope."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Publish was not acknowledged."""

    PIPELINE_FAILED = "error.pipeline"
    """Run failed at some stage."""


# Event categories for filtering
CAPTURE_EVENTS = {
    LogEvent.CAPTURE_STARTED,
    LogEvent.CAPTURE_STALL,
    LogEvent.CAPTURE_RESTARTED,
    LogEvent.CAPTURE_QUIT,
    LogEvent.CAPTURE_FRAME_IGNORED,
    LogEvent.CAPTURE_COMPLETE,
    LogEvent.CAPTURE_SAVED,
}

MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTING,
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_CONNECTION_LOST,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_DELIVERY_COMPLETE,
}

ERROR_EVENTS = {
    LogEvent.CAPTURE_ERROR,
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
    LogEvent.PIPELINE_FAILED,
}
