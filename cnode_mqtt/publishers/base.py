"""
Base MQTT Publisher
==================

Bounded Context: MQTT Infrastructure

This module provides the abstract base class for single-shot MQTT publishers.

Design:
- Connection lifecycle with explicit acknowledgement waits
  (CONNACK, disconnect) bounded by timeouts
- No automatic reconnect: a lost connection is logged and reported on
  ``connection_events``
- Thread-safe (paho-mqtt network loop + threading.Event)
- Structured logging integration

Architecture:
    BasePublisher (abstract)
        ↓
    FramePublisher (concrete)

Responsibilities:
- MQTT connection lifecycle
- Translating broker failures into PublishError
- NOT responsible for: what gets published (delegated to subclasses)
"""

import queue
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from ..logging import StructuredLogger, LogEvent
from ..schemas import BrokerAddress, LastWill

ClientFactory = Callable[[str], mqtt.Client]


class PublishError(Exception):
    """Raised when a connect, publish or disconnect step fails."""
    pass


@dataclass(frozen=True)
class ConnectionLost:
    """Notification that the broker connection dropped unexpectedly."""
    cause: str
    broker: str


def default_client_factory(client_id: str) -> mqtt.Client:
    """Create a paho client using the v2 callback API."""
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        reconnect_on_failure=False,
    )


class BasePublisher(ABC):
    """
    Abstract base class for MQTT publishers.

    Handles the MQTT connection and turns callbacks into blocking waits.
    Subclasses implement publish_once().

    Attributes:
        broker: Parsed broker address
        client_id: MQTT client identifier
        logger: Structured logger instance
        client: paho client
        connection_events: Queue of ConnectionLost notifications

    Thread Safety:
        Callbacks run on paho's network thread; state shared with the caller
        goes through threading.Event and queue.Queue.
    """

    def __init__(
        self,
        broker_address: str,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        will: Optional[LastWill] = None,
        tls_ca_certs: Optional[str] = None,
        keepalive: int = 60,
        client_factory: ClientFactory = default_client_factory
    ):
        """
        Initialize MQTT publisher.

        Args:
            broker_address: Broker URL, e.g. tcp://localhost:1883
            client_id: Unique client identifier
            logger: Structured logger for observability
            username: MQTT authentication username (optional)
            password: MQTT authentication password (optional)
            will: Last Will and Testament to register (optional)
            tls_ca_certs: CA bundle for ssl:// addresses (optional)
            keepalive: MQTT keepalive in seconds
            client_factory: Builds the paho client from a client id
        """
        self.broker_address = broker_address
        self.broker = BrokerAddress.parse(broker_address)
        self.client_id = client_id
        self.logger = logger
        self.keepalive = keepalive
        self.will = will

        # MQTT client setup
        self.client = client_factory(client_id)
        if username:
            self.client.username_pw_set(username, password)
        if will is not None:
            self.client.will_set(will.topic, will.payload, qos=will.qos, retain=will.retain)
        if self.broker.tls:
            self.client.tls_set(ca_certs=tls_ca_certs)

        # Callbacks
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_publish = self._on_publish

        # Connection state
        self._connack = threading.Event()
        self._connected = threading.Event()
        self._disconnected = threading.Event()
        self._disconnect_requested = False
        self._connect_failure: Optional[str] = None
        self._loop_started = False

        self.connection_events: "queue.Queue[ConnectionLost]" = queue.Queue()

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None
    ) -> None:
        """Callback when CONNACK arrives."""
        if reason_code.is_failure:
            self._connect_failure = str(reason_code)
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection ({reason_code})",
                metadata={'broker': str(self.broker)}
            )
        else:
            self._connected.set()
            self.logger.info(
                event=LogEvent.MQTT_CONNECTED,
                message="Connected to MQTT broker",
                metadata={
                    'broker': str(self.broker),
                    'client_id': self.client_id
                }
            )
        self._connack.set()

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None
    ) -> None:
        """
        Callback when the connection closes.

        A requested disconnect completes the disconnect wait. Anything else
        is a lost connection: it is logged and queued, never reconnected.
        """
        self._connected.clear()

        if self._disconnect_requested:
            self.logger.info(
                event=LogEvent.MQTT_DISCONNECTED,
                message="Disconnected from MQTT broker",
                metadata={'broker': str(self.broker)}
            )
            self._disconnected.set()
            return

        cause = str(reason_code)
        self.logger.warning(
            event=LogEvent.MQTT_CONNECTION_LOST,
            message="Connection lost",
            metadata={'broker': str(self.broker), 'cause': cause}
        )
        self.connection_events.put(ConnectionLost(cause=cause, broker=str(self.broker)))

        if not self._connack.is_set():
            self._connect_failure = f"connection lost: {cause}"
            self._connack.set()

    def _on_publish(
        self,
        client: mqtt.Client,
        userdata: Any,
        mid: int,
        reason_code: Any = None,
        properties: Any = None
    ) -> None:
        self.logger.debug(
            event=LogEvent.MQTT_DELIVERY_COMPLETE,
            message=f"Delivery complete for message {mid}",
            metadata={'mid': mid}
        )

    def connect(self, timeout: float) -> None:
        """
        Connect to the broker and wait for CONNACK.

        Args:
            timeout: Seconds allowed for the whole step, TCP connect and
                CONNACK together

        Raises:
            PublishError: On socket error, refusal or timeout. The message
                always names the broker address.
        """
        self.logger.info(
            event=LogEvent.MQTT_CONNECTING,
            message="Connecting to MQTT broker",
            metadata={'broker': str(self.broker), 'client_id': self.client_id}
        )

        deadline = time.monotonic() + timeout
        self.client.connect_timeout = timeout
        try:
            self.client.connect(self.broker.host, self.broker.port, keepalive=self.keepalive)
        except OSError as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': str(self.broker)}
            )
            raise PublishError(
                f"Unable to connect to MQTT broker at {self.broker_address}: {e}"
            ) from e

        self.client.loop_start()
        self._loop_started = True

        if not self._connack.wait(timeout=max(0.0, deadline - time.monotonic())):
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Connection timeout",
                metadata={'broker': str(self.broker), 'timeout': timeout}
            )
            raise PublishError(
                f"Timed out after {timeout}s waiting for MQTT broker at {self.broker_address}"
            )

        if self._connect_failure is not None:
            raise PublishError(
                f"MQTT broker at {self.broker_address} refused connection: {self._connect_failure}"
            )

    def disconnect(self, timeout: float) -> None:
        """
        Disconnect cleanly and wait for the disconnect callback.

        Raises:
            PublishError: If the disconnect fails or is not confirmed in time
        """
        self._disconnect_requested = True
        rc = self.client.disconnect()
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(
                f"Disconnect from {self.broker_address} failed: {mqtt.error_string(rc)}"
            )

        if not self._disconnected.wait(timeout=timeout):
            raise PublishError(
                f"Timed out after {timeout}s waiting for disconnect from {self.broker_address}"
            )

    def close(self) -> None:
        """Stop the network loop if it was started."""
        if self._loop_started:
            self.client.loop_stop()
            self._loop_started = False

    def is_connected(self) -> bool:
        """Check if currently connected to broker."""
        return self._connected.is_set()

    @abstractmethod
    def publish_once(self) -> None:
        """
        Run one complete publish sequence.

        Raises:
            PublishError: On any failure
        """
        raise NotImplementedError("Subclasses must implement publish_once()")
