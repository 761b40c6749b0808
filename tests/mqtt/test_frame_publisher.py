"""tests/mqtt/test_frame_publisher.py — unit tests for the single-shot publisher.

The paho client is replaced by FakeMqttClient, which calls the publisher's
callbacks synchronously, so no broker is required.
"""

from __future__ import annotations

import time

import paho.mqtt.client as mqtt
import pytest

from cnode_mqtt import FramePublisher, LastWill, PublishError, PublishRequest
from cnode_mqtt.publishers import ConnectionLost
from cnode_mqtt.schemas import BrokerAddress
from tests.fakes import ClientRecorder, JPEG_BYTES


def _request(**overrides) -> PublishRequest:
    values = dict(
        broker_address="tcp://broker.local:1883",
        client_id="cnode-1",
        topic="events/frame",
        payload=JPEG_BYTES,
        connect_timeout=0.05,
        publish_timeout=0.05,
        disconnect_timeout=0.05,
    )
    values.update(overrides)
    return PublishRequest(**values)


def _publish(logger, request=None, **behaviour):
    recorder = ClientRecorder(**behaviour)
    publisher = FramePublisher(request or _request(), logger=logger, client_factory=recorder)
    return publisher, recorder


# ---------------------------------------------------------------------------
# Success path
# ---------------------------------------------------------------------------

def test_connect_publish_disconnect_in_order(logger):
    publisher, recorder = _publish(logger)

    publisher.publish_once()

    client = recorder.client
    assert client.calls == ["connect", "loop_start", "publish", "disconnect", "loop_stop"]
    assert client.address == ("broker.local", 1883)
    assert client.client_id == "cnode-1"
    assert client.published == [
        {'topic': "events/frame", 'payload': JPEG_BYTES, 'qos': 1, 'retain': False}
    ]
    assert client.connect_timeout == 0.05
    assert not publisher.is_connected()


def test_credentials_and_will_are_registered(logger):
    request = _request(username="testuser", password="testpassword", will=LastWill())
    publisher, recorder = _publish(logger, request)

    publisher.publish_once()

    assert recorder.client.credentials == ("testuser", "testpassword")
    assert recorder.client.will == {
        'topic': "events/disconnect",
        'payload': "Last will and testament.",
        'qos': 1,
        'retain': True,
    }


def test_will_not_registered_when_disabled(logger):
    publisher, recorder = _publish(logger)
    publisher.publish_once()
    assert recorder.client.will is None
    assert recorder.client.credentials is None


def test_tls_address_enables_tls(logger):
    request = _request(broker_address="ssl://broker.local", tls_ca_certs="/etc/ssl/ca.pem")
    publisher, recorder = _publish(logger, request)

    publisher.publish_once()

    assert recorder.client.tls == {'ca_certs': "/etc/ssl/ca.pem"}
    assert recorder.client.address == ("broker.local", 8883)


def test_publisher_is_single_shot(logger):
    publisher, _ = _publish(logger)
    publisher.publish_once()

    with pytest.raises(PublishError, match="single-shot"):
        publisher.publish_once()


# ---------------------------------------------------------------------------
# Connect failures
# ---------------------------------------------------------------------------

def test_connect_timeout_never_publishes(logger):
    publisher, recorder = _publish(logger, connack=False)

    with pytest.raises(PublishError, match="tcp://broker.local:1883") as excinfo:
        publisher.publish_once()

    assert "Timed out" in str(excinfo.value)
    assert "publish" not in recorder.client.calls
    assert "disconnect" not in recorder.client.calls
    assert recorder.client.calls[-1] == "loop_stop"


def test_connect_timeout_covers_tcp_connect_and_connack(logger):
    request = _request(connect_timeout=1.0)
    publisher, recorder = _publish(logger, request, connack=False, connect_delay=0.8)

    started = time.monotonic()
    with pytest.raises(PublishError, match="Timed out"):
        publisher.publish_once()

    assert time.monotonic() - started < 1.5
    assert "publish" not in recorder.client.calls


def test_refused_connection_never_publishes(logger):
    publisher, recorder = _publish(logger, refuse=True)

    with pytest.raises(PublishError, match="refused connection: Not authorized"):
        publisher.publish_once()

    assert "publish" not in recorder.client.calls


def test_socket_error_names_broker(logger):
    publisher, recorder = _publish(logger, connect_error=ConnectionRefusedError("refused"))

    with pytest.raises(PublishError, match="tcp://broker.local:1883"):
        publisher.publish_once()

    # loop never started, nothing to stop
    assert recorder.client.calls == ["connect"]


# ---------------------------------------------------------------------------
# Publish failures
# ---------------------------------------------------------------------------

def test_missing_puback_fails_without_disconnect(logger):
    publisher, recorder = _publish(logger, puback=False)

    with pytest.raises(PublishError, match="not acknowledged within 0.05s"):
        publisher.publish_once()

    assert "disconnect" not in recorder.client.calls
    assert recorder.client.calls[-1] == "loop_stop"


def test_rejected_publish_fails_without_disconnect(logger):
    publisher, recorder = _publish(logger, publish_rc=mqtt.MQTT_ERR_NO_CONN)

    with pytest.raises(PublishError, match="rejected"):
        publisher.publish_once()

    assert "disconnect" not in recorder.client.calls


def test_connection_lost_is_reported_not_reconnected(logger):
    publisher, recorder = _publish(logger, drop_on_publish=True, puback=False)

    with pytest.raises(PublishError):
        publisher.publish_once()

    lost = publisher.connection_events.get_nowait()
    assert lost == ConnectionLost(cause="Keep alive timeout", broker="tcp://broker.local:1883")
    assert recorder.client.calls.count("connect") == 1


# ---------------------------------------------------------------------------
# Request / address validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("address,expected", [
    ("tcp://localhost:1883", BrokerAddress("localhost", 1883, False)),
    ("mqtt://localhost", BrokerAddress("localhost", 1883, False)),
    ("localhost:1884", BrokerAddress("localhost", 1884, False)),
    ("broker", BrokerAddress("broker", 1883, False)),
    ("mqtts://broker", BrokerAddress("broker", 8883, True)),
    ("ssl://broker:9999", BrokerAddress("broker", 9999, True)),
])
def test_broker_address_parse(address, expected):
    assert BrokerAddress.parse(address) == expected


@pytest.mark.parametrize("address", ["", "http://broker", "tcp://:1883", "tcp://broker:notaport"])
def test_broker_address_rejects(address):
    with pytest.raises(ValueError):
        BrokerAddress.parse(address)


@pytest.mark.parametrize("overrides", [
    {'topic': ""},
    {'client_id': ""},
    {'qos': 0},
    {'connect_timeout': 0},
    {'publish_timeout': -1},
    {'broker_address': "ftp://x"},
])
def test_publish_request_validation(overrides):
    with pytest.raises(ValueError):
        _request(**overrides)


def test_request_repr_hides_payload_and_password():
    text = repr(_request(password="secret"))
    assert "secret" not in text
    assert "payload" not in text
