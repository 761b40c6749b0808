"""
Frame Publisher
==============

Bounded Context: Envelope Delivery

This module delivers one serialized envelope to one topic over one broker
connection.

Sequence:
    connect (wait CONNACK) → publish QoS 1 (wait PUBACK) → disconnect

Failure at any step aborts the remaining steps. Disconnect is only sent after
a PUBACK; on the failure path the network loop is stopped without a
DISCONNECT packet, so the broker delivers the Last Will to other subscribers.

Example:
    >>> request = PublishRequest(
    ...     broker_address="tcp://localhost:1883",
    ...     client_id="cnode-1",
    ...     topic="events/frame",
    ...     payload=build_envelope("1", jpeg_bytes),
    ...     will=LastWill()
    ... )
    >>> FramePublisher(request, logger=create_logger("publisher")).publish_once()
"""

import paho.mqtt.client as mqtt

from .base import BasePublisher, ClientFactory, PublishError, default_client_factory
from ..schemas import PublishRequest
from ..logging import StructuredLogger, LogEvent


class FramePublisher(BasePublisher):
    """
    Single-shot publisher for one PublishRequest.

    An instance performs at most one publish sequence.
    """

    def __init__(
        self,
        request: PublishRequest,
        logger: StructuredLogger,
        client_factory: ClientFactory = default_client_factory
    ):
        super().__init__(
            broker_address=request.broker_address,
            client_id=request.client_id,
            logger=logger,
            username=request.username,
            password=request.password,
            will=request.will,
            tls_ca_certs=request.tls_ca_certs,
            client_factory=client_factory
        )
        self.request = request
        self._used = False

    def publish_once(self) -> None:
        """
        Connect, publish the payload at QoS 1 and disconnect.

        Raises:
            PublishError: On connect/publish/disconnect failure or timeout,
                or when called a second time
        """
        if self._used:
            raise PublishError("FramePublisher is single-shot and was already used")
        self._used = True

        try:
            self.connect(timeout=self.request.connect_timeout)
            self._publish_payload()
            self.disconnect(timeout=self.request.disconnect_timeout)
        finally:
            self.close()

    def _publish_payload(self) -> None:
        request = self.request
        info = self.client.publish(
            topic=request.topic,
            payload=request.payload,
            qos=request.qos,
            retain=False
        )

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message=f"Publish rejected (rc={info.rc})",
                metadata={'topic': request.topic}
            )
            raise PublishError(
                f"Publish to '{request.topic}' rejected: {mqtt.error_string(info.rc)}"
            )

        try:
            info.wait_for_publish(timeout=request.publish_timeout)
        except (RuntimeError, ValueError) as e:
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error waiting for publish acknowledgement",
                exc_info=e,
                metadata={'topic': request.topic}
            )
            raise PublishError(f"Publish to '{request.topic}' failed: {e}") from e

        if not info.is_published():
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Publish acknowledgement timeout",
                metadata={'topic': request.topic, 'timeout': request.publish_timeout}
            )
            raise PublishError(
                f"Publish to '{request.topic}' not acknowledged within "
                f"{request.publish_timeout}s"
            )

        self.logger.info(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published envelope",
            metadata={
                'topic': request.topic,
                'qos': request.qos,
                'bytes': len(request.payload),
                'mid': info.mid
            }
        )
