"""
MQTT Connection Interface and its `aiomqtt` Adapter.

The service clients only need two coroutines from a connection:

- ``publish(topic, payload, qos) -> PublishResult``
- ``subscribe(topic, qos, on_message) -> SubscriptionHandle``

`MqttConnection` spells that contract out. `AiomqttConnection` implements it
on top of an `aiomqtt.Client`, running one background task that hands every
inbound message to the callback registered for its topic.

Connecting, reconnecting, TLS and QoS enforcement are the transport's job.
The connection object is shared by every service client built on it and must
tolerate concurrent publish/subscribe calls, which aiomqtt does.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol

import aiomqtt

from iot_service_mqtt.errors import SubscribeError, TransportError, UnsupportedQoSError
from iot_service_mqtt.models import PublishResult, QoS, SubscriptionHandle, SubscriptionState

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str, bytes], None]


class MqttConnection(Protocol):
    async def publish(self, topic: str, payload: bytes, qos: QoS) -> PublishResult:
        ...

    async def subscribe(self, topic: str, qos: QoS, on_message: MessageCallback) -> SubscriptionHandle:
        ...


@dataclass(frozen=True, kw_only=True)
class ConnectionSettings:
    """Everything needed to open an mTLS connection to an AWS IoT endpoint."""
    endpoint: str
    port: int = 8883
    client_id: str = field(default_factory=lambda: f"test-{uuid.uuid4()}")
    cert: Optional[str] = None
    key: Optional[str] = None
    ca_file: Optional[str] = None
    use_tls: bool = True
    keepalive: int = 30
    clean_session: bool = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ConnectionSettings":
        """Builds settings from the ``mqtt`` section of a loaded configuration."""
        mqtt_conf = config.get('mqtt', {})
        endpoint = mqtt_conf.get('endpoint')
        if not endpoint:
            raise ValueError("An MQTT endpoint is required (mqtt.endpoint or --endpoint)")
        kwargs = {
            'endpoint': endpoint,
            'port': int(mqtt_conf.get('port', 8883)),  # Must be int
            'cert': mqtt_conf.get('cert'),
            'key': mqtt_conf.get('key'),
            'ca_file': mqtt_conf.get('ca_file'),
            'use_tls': bool(mqtt_conf.get('use_tls', True)),
            'keepalive': int(mqtt_conf.get('keepalive', 30)),
            'clean_session': bool(mqtt_conf.get('clean_session', False)),
        }
        if mqtt_conf.get('client_id'):
            kwargs['client_id'] = mqtt_conf['client_id']
        return cls(**kwargs)

    def to_aiomqtt_args(self) -> Dict[str, Any]:
        """Returns dict suitable for aiomqtt.Client(**args)"""
        args: Dict[str, Any] = {
            "hostname": self.endpoint,
            "port": self.port,
            "identifier": self.client_id,
            "keepalive": self.keepalive,
            "clean_session": self.clean_session,
        }
        if self.use_tls:
            args["tls_params"] = aiomqtt.TLSParameters(
                ca_certs=self.ca_file,
                certfile=self.cert,
                keyfile=self.key,
            )
        return args


def _check_qos(qos: Any) -> QoS:
    try:
        qos = QoS(qos)
    except ValueError as e:
        raise UnsupportedQoSError(f"Invalid QoS {qos!r}") from e
    if qos is QoS.EXACTLY_ONCE:
        raise UnsupportedQoSError("QoS 2 is not supported by AWS IoT")
    return qos


def _granted_code(granted: Any) -> Optional[int]:
    # MQTT 3.1.1 returns a tuple of ints, MQTT 5 a list of ReasonCodes
    if not granted:
        return None
    first = granted[0]
    return int(getattr(first, "value", first))


class AiomqttConnection:
    """
    Adapts a connected `aiomqtt.Client` to the `MqttConnection` interface.
    Only one callback is kept per topic filter; subscribing again replaces it.
    """
    client: aiomqtt.Client
    _callbacks: Dict[str, MessageCallback]
    _dispatch_task: Optional[asyncio.Task]

    def __init__(self, client: aiomqtt.Client):
        self.client = client
        self._callbacks = {}
        self._dispatch_task = None

    async def start(self):
        """
        Launches the dispatch loop in the background.
        """
        if self._dispatch_task is None:
            self._dispatch_task = asyncio.create_task(self._dispatch_loop())

    async def stop(self):
        """
        Cancels the dispatch loop. The client itself is left open.
        """
        if self._dispatch_task:
            logger.info("Stopping message dispatch...")
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                logger.info("Message dispatch stopped gracefully.")
            self._dispatch_task = None

    async def publish(self, topic: str, payload: bytes, qos: QoS) -> PublishResult:
        qos = _check_qos(qos)
        logger.debug(f"Publishing {len(payload)} bytes to '{topic}' (qos={int(qos)})")
        try:
            await self.client.publish(topic, payload=payload, qos=int(qos))
        except aiomqtt.MqttError as e:
            raise TransportError(f"Publish to '{topic}' failed: {e}", payload) from e
        return PublishResult(topic=topic, qos=qos)

    async def subscribe(self, topic: str, qos: QoS, on_message: MessageCallback) -> SubscriptionHandle:
        qos = _check_qos(qos)
        handle = SubscriptionHandle(topic=topic, qos=qos)

        # Registered before SUBSCRIBE goes out: retained messages may beat the SUBACK
        previous = self._callbacks.get(topic)
        self._callbacks[topic] = on_message
        logger.debug(f"Subscribing to '{topic}' (qos={int(qos)})")
        try:
            granted = await self.client.subscribe(topic, qos=int(qos))
        except aiomqtt.MqttError as e:
            self._restore_callback(topic, previous)
            raise SubscribeError(f"Subscribe to '{topic}' failed: {e}",
                                 replace(handle, state=SubscriptionState.FAILED)) from e

        code = _granted_code(granted)
        if code is None or code >= 0x80:
            self._restore_callback(topic, previous)
            raise SubscribeError(f"Broker refused subscription to '{topic}' (code {code})",
                                 replace(handle, state=SubscriptionState.FAILED))
        logger.info(f"Subscribed to '{topic}' (granted qos={code})")
        return replace(handle, granted_qos=QoS(code), state=SubscriptionState.ACKNOWLEDGED)

    def _restore_callback(self, topic: str, previous: Optional[MessageCallback]):
        # A failed re-subscribe leaves the earlier broker subscription in place
        if previous is None:
            self._callbacks.pop(topic, None)
        else:
            self._callbacks[topic] = previous

    def dispatch(self, topic: str, payload: bytes):
        """Hands one inbound message to every callback whose filter matches `topic`."""
        matched = False
        for topic_filter, callback in list(self._callbacks.items()):
            if not aiomqtt.Topic(topic).matches(topic_filter):
                continue
            matched = True
            try:
                callback(topic, payload)
            except Exception:
                logger.exception(f"Message callback for '{topic_filter}' failed")
        if not matched:
            logger.debug(f"No subscription for message on '{topic}'")

    async def _dispatch_loop(self):
        """The background worker that feeds inbound messages to the callbacks."""
        try:
            async for message in self.client.messages:
                self.dispatch(message.topic.value, message.payload)
        except asyncio.CancelledError:
            logger.debug("Dispatch loop has been cancelled.")
            raise
        except aiomqtt.MqttError as e:
            logger.error(f"MQTT connection lost while dispatching: {e}")


@asynccontextmanager
async def connect(settings: ConnectionSettings) -> AsyncIterator[AiomqttConnection]:
    """
    Opens an aiomqtt connection and yields it wrapped in an `AiomqttConnection`.
    The connection is only valid inside the ``async with`` block.
    """
    logger.info(f"Connecting to {settings.endpoint}:{settings.port} as {settings.client_id}...")
    async with aiomqtt.Client(**settings.to_aiomqtt_args()) as client:
        logger.info(f"Connected to {settings.endpoint}!")
        connection = AiomqttConnection(client)
        await connection.start()
        try:
            yield connection
        finally:
            await connection.stop()
    logger.info("Disconnected.")
