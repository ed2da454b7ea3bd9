"""
iot_service_mqtt

Typed request/response/event mapping for the AWS IoT Device Shadow MQTT
API, layered over an externally supplied MQTT connection.
"""
__version__ = "0.1.0"

from iot_service_mqtt.connection import AiomqttConnection, ConnectionSettings, MqttConnection, connect
from iot_service_mqtt.errors import (
    DecodeError,
    ServiceClientError,
    ServiceError,
    SubscribeError,
    TemplateError,
    TransportError,
    UnsupportedQoSError,
)
from iot_service_mqtt.models import PublishResult, QoS, SubscriptionHandle, SubscriptionState
