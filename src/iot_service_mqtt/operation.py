"""
Generic Publish/Subscribe Machinery for Service Clients.

Every service operation is the same four steps: render the topic from the
request, encode (publish) or decode (subscribe) the payload, and hand it to
the connection. `Operation` describes one operation; `ServiceClient` runs
any operation through a single publish or subscribe executor.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar

from iot_service_mqtt import codec
from iot_service_mqtt.connection import MqttConnection
from iot_service_mqtt.errors import DecodeError
from iot_service_mqtt.models import PublishResult, QoS, SubscriptionHandle
from iot_service_mqtt.topics import TopicTemplate

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT")
ResponseT = TypeVar("ResponseT")

# handler(error, None) on a bad payload, handler(None, event) otherwise
MessageHandler = Callable[[Optional[DecodeError], Optional[ResponseT]], None]


@dataclass(frozen=True)
class Operation(Generic[RequestT, ResponseT]):
    """
    Describes one protocol operation: its topic and the types flowing through it.
    Publish operations have no `response_type`.
    """
    name: str
    template: TopicTemplate
    request_type: Type[RequestT]
    response_type: Optional[Type[ResponseT]] = None

    def __post_init__(self):
        self.template.check_request_type(self.request_type)

    @property
    def is_subscription(self) -> bool:
        return self.response_type is not None

    def topic_for(self, request: RequestT) -> str:
        return self.template.render_for(request)


def publish_operation(name: str, pattern: str, request_type: type) -> Operation:
    return Operation(name, TopicTemplate(pattern), request_type)


def subscribe_operation(name: str, pattern: str, request_type: type, response_type: type) -> Operation:
    return Operation(name, TopicTemplate(pattern), request_type, response_type)


class MessageAdapter(Generic[ResponseT]):
    """
    The raw-message callback registered with the connection for one subscription.

    Decodes each payload and calls the handler exactly once. Nothing raised
    here reaches the connection's dispatch loop: decode failures become a
    `DecodeError` argument and handler failures are logged.
    """
    def __init__(self, operation: Operation[Any, ResponseT], handler: MessageHandler):
        self.operation = operation
        self.handler = handler

    def __call__(self, topic: str, payload: bytes):
        result = codec.decode(payload, self.operation.response_type)
        if result.error is not None:
            logger.warning(f"{self.operation.name}: undecodable message on '{topic}': {result.error}")
        try:
            self.handler(result.error, result.value)
        except Exception:
            logger.exception(f"{self.operation.name}: message handler raised for '{topic}'")


class ServiceClient:
    """
    Base class for service clients. Subclasses declare their operations as
    class attributes and expose one thin coroutine per operation.

    The client does not own the connection: it never opens or closes it.
    """
    operations: Dict[str, Operation] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.operations = {}
        seen: Dict[TopicTemplate, str] = {}
        for attr, value in vars(cls).items():
            if not isinstance(value, Operation):
                continue
            if value.template in seen:
                raise ValueError(
                    f"{cls.__name__}: operations '{seen[value.template]}' and '{value.name}' "
                    f"share the topic '{value.template.pattern}'")
            seen[value.template] = value.name
            cls.operations[value.name] = value

    def __init__(self, connection: MqttConnection):
        self.connection = connection

    async def _publish(self, operation: Operation[RequestT, Any], request: RequestT, qos: QoS) -> PublishResult:
        topic = operation.topic_for(request)
        payload = codec.encode(request)
        logger.debug(f"{operation.name}: publishing to '{topic}': {payload!r}")
        return await self.connection.publish(topic, payload, qos)

    async def _subscribe(self, operation: Operation[Any, ResponseT], request: Any, qos: QoS,
                         handler: MessageHandler) -> SubscriptionHandle:
        topic = operation.topic_for(request)
        logger.debug(f"{operation.name}: subscribing to '{topic}'")
        return await self.connection.subscribe(topic, qos, MessageAdapter(operation, handler))
