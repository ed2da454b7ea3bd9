"""
Data Models shared by the Connection and the Service Clients.

Defines the transport-level values (QoS, publish results, subscription
handles) and the base class all service payloads derive from.
"""
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Optional, Type, TypeVar

from pydantic import GetCoreSchemaHandler
from pydantic_core import CoreSchema

from iot_service_mqtt import codec

P = TypeVar("P", bound="ServicePayload")


class QoS(IntEnum):
    AT_MOST_ONCE = 0
    AT_LEAST_ONCE = 1
    EXACTLY_ONCE = 2  # not accepted by AWS IoT


class SubscriptionState(str, Enum):
    REQUESTED = "requested"
    ACKNOWLEDGED = "acknowledged"
    FAILED = "failed"


@dataclass(frozen=True)
class PublishResult:
    """
    Outcome of a completed publish. Completion means the packet was sent
    (QoS 0) or acknowledged with a PUBACK (QoS 1).
    """
    topic: str
    qos: QoS
    packet_id: Optional[int] = None


@dataclass(frozen=True)
class SubscriptionHandle:
    """Represents one topic subscription and the state of its SUBSCRIBE handshake."""
    topic: str
    qos: QoS
    granted_qos: Optional[QoS] = None
    state: SubscriptionState = SubscriptionState.REQUESTED

    @property
    def acknowledged(self) -> bool:
        return self.state is SubscriptionState.ACKNOWLEDGED


# --- Base Class for service payloads ---

@dataclass(frozen=True, kw_only=True)
class ServicePayload:
    """Base class for all JSON payloads exchanged with a service."""
    __pydantic_config__ = codec.WIRE_CONFIG

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> CoreSchema:
        return codec.wire_only_schema(source, handler(source))

    def to_json(self) -> str:
        """Converts the object to its JSON body (path parameters excluded)."""
        return self.to_bytes().decode("utf-8")

    def to_bytes(self) -> bytes:
        """Converts the object to UTF-8 encoded bytes for MQTT."""
        return codec.encode(self)

    @classmethod
    def from_bytes(cls: Type[P], payload: bytes) -> P:
        """Decodes `payload` into this type, raising the `DecodeError` on failure."""
        result = codec.decode(payload, cls)
        if result.error is not None:
            raise result.error
        return result.value
