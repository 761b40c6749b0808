import pytest

from cnode_mqtt.logging import create_logger


@pytest.fixture
def logger():
    return create_logger("test")
