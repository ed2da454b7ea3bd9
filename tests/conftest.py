"""
Pytest Configuration and Fixtures for the iot_service_mqtt project.

Provides an in-memory stand-in for the MQTT connection so the service clients
can be exercised without a broker, plus the global test logging setup.
"""

import sys
import logging
from typing import Callable, Dict, List, Tuple

import pytest

from iot_service_mqtt.models import PublishResult, QoS, SubscriptionHandle, SubscriptionState


class FakeConnection:
    """
    Records publishes and subscriptions. Payloads queued in `retained` are
    delivered inside `subscribe`, i.e. before the subscription is acknowledged,
    the way a broker may send retained messages ahead of the SUBACK.
    """
    def __init__(self):
        self.published: List[Tuple[str, bytes, QoS]] = []
        self.callbacks: Dict[str, Callable[[str, bytes], None]] = {}
        self.retained: Dict[str, List[bytes]] = {}

    async def publish(self, topic: str, payload: bytes, qos: QoS) -> PublishResult:
        self.published.append((topic, payload, qos))
        return PublishResult(topic=topic, qos=QoS(qos), packet_id=len(self.published))

    async def subscribe(self, topic: str, qos: QoS, on_message) -> SubscriptionHandle:
        self.callbacks[topic] = on_message
        for payload in self.retained.pop(topic, []):
            on_message(topic, payload)
        return SubscriptionHandle(topic=topic, qos=QoS(qos), granted_qos=QoS(qos),
                                  state=SubscriptionState.ACKNOWLEDGED)

    def deliver(self, topic: str, payload: bytes):
        self.callbacks[topic](topic, payload)


@pytest.fixture
def fake_connection():
    return FakeConnection()


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """
    Configures the Python logging framework globally for all tests,
    since tests bypass the sample's own logging setup.
    """
    formatter = logging.Formatter(fmt="%(levelname)-8s %(message)s - %(funcName)s:%(lineno)d ")
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
