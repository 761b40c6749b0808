"""
Publish Request Schema
======================

Bounded Context: Broker-facing Operation

A PublishRequest carries everything the publisher needs for one
connect → publish → disconnect sequence. It is built once per run, after the
envelope bytes exist.
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

QOS_AT_LEAST_ONCE = 1

DEFAULT_PORT = 1883
DEFAULT_TLS_PORT = 8883
TLS_SCHEMES = {"ssl", "mqtts", "tls"}
PLAIN_SCHEMES = {"tcp", "mqtt"}

LWT_TOPIC = "events/disconnect"
LWT_PAYLOAD = "Last will and testament."

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class BrokerAddress:
    """
    Parsed broker address.

    Accepts ``tcp://host:port``, ``mqtt://host``, ``ssl://host:port``,
    ``mqtts://host`` or a bare ``host[:port]``.
    """
    host: str
    port: int
    tls: bool = False

    @classmethod
    def parse(cls, address: str) -> 'BrokerAddress':
        if not address:
            raise ValueError("broker address cannot be empty")

        text = address if "://" in address else f"tcp://{address}"
        parts = urlsplit(text)
        scheme = parts.scheme.lower()
        if scheme not in TLS_SCHEMES | PLAIN_SCHEMES:
            raise ValueError(f"Unsupported broker scheme: {parts.scheme!r}")

        tls = scheme in TLS_SCHEMES
        try:
            port = parts.port
        except ValueError as e:
            raise ValueError(f"Invalid broker port in {address!r}") from e
        if not parts.hostname:
            raise ValueError(f"Missing broker host in {address!r}")

        return cls(
            host=parts.hostname,
            port=port if port is not None else (DEFAULT_TLS_PORT if tls else DEFAULT_PORT),
            tls=tls,
        )

    def __str__(self) -> str:
        return f"{'ssl' if self.tls else 'tcp'}://{self.host}:{self.port}"


@dataclass(frozen=True)
class LastWill:
    """Last Will and Testament published by the broker on unexpected disconnect."""
    topic: str = LWT_TOPIC
    payload: str = LWT_PAYLOAD
    qos: int = QOS_AT_LEAST_ONCE
    retain: bool = True


@dataclass(frozen=True)
class PublishRequest:
    """
    One publish operation.

    Attributes:
        broker_address: Broker URL (see BrokerAddress)
        client_id: MQTT client identifier
        topic: Destination topic
        payload: Serialized envelope
        qos: Fixed at 1 (at-least-once)
        connect_timeout: Seconds to wait for CONNACK
        publish_timeout: Seconds to wait for PUBACK
        disconnect_timeout: Seconds to wait for the disconnect to complete
        username: Optional MQTT username
        password: Optional MQTT password
        will: Optional Last Will and Testament
        tls_ca_certs: CA bundle path for TLS addresses (None: system default)
    """
    broker_address: str
    client_id: str
    topic: str
    payload: bytes = field(repr=False)
    qos: int = QOS_AT_LEAST_ONCE
    connect_timeout: float = DEFAULT_TIMEOUT
    publish_timeout: float = DEFAULT_TIMEOUT
    disconnect_timeout: float = DEFAULT_TIMEOUT
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    will: Optional[LastWill] = None
    tls_ca_certs: Optional[str] = None

    def __post_init__(self):
        """Validate request."""
        if not self.topic:
            raise ValueError("topic cannot be empty")
        if not self.client_id:
            raise ValueError("client_id cannot be empty")
        if self.qos != QOS_AT_LEAST_ONCE:
            raise ValueError(f"qos is fixed at {QOS_AT_LEAST_ONCE}, got {self.qos}")
        for name in ("connect_timeout", "publish_timeout", "disconnect_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")
        # raises ValueError on malformed addresses
        BrokerAddress.parse(self.broker_address)

    @property
    def broker(self) -> BrokerAddress:
        return BrokerAddress.parse(self.broker_address)
