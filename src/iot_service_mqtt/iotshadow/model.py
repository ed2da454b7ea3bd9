"""
Data Models for the AWS IoT Device Shadow Service.

Requests carry their path parameters (``thing_name``, ``shadow_name``) as
fields flagged ``topic``; those fill the topic and are not part of the JSON
body. Responses and events are decoded from the service's JSON and every
field of theirs is optional.

AWS documentation: https://docs.aws.amazon.com/iot/latest/developerguide/device-shadow-mqtt.html
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from iot_service_mqtt.errors import ServiceError
from iot_service_mqtt.models import ServicePayload


def path_param(**kwargs):
    """A request field that fills a topic placeholder instead of the JSON body."""
    return field(metadata={"topic": True}, **kwargs)


# --- Shared shapes ---

@dataclass(frozen=True, kw_only=True)
class ShadowState(ServicePayload):
    """
    (Potentially partial) state of a shadow.

    Setting ``desired_is_nullable`` (or ``reported_is_nullable``) with the
    section left as ``None`` sends an explicit JSON null, which tells the
    service to clear that whole section.
    """
    desired: Optional[Dict[str, Any]] = field(default=None, metadata={"null_if": "desired_is_nullable"})
    reported: Optional[Dict[str, Any]] = field(default=None, metadata={"null_if": "reported_is_nullable"})
    desired_is_nullable: bool = field(default=False, metadata={"local": True})
    reported_is_nullable: bool = field(default=False, metadata={"local": True})


@dataclass(frozen=True, kw_only=True)
class ShadowStateWithDelta(ServicePayload):
    """State of a shadow including the delta between desired and reported."""
    desired: Optional[Dict[str, Any]] = None
    reported: Optional[Dict[str, Any]] = None
    delta: Optional[Dict[str, Any]] = None


@dataclass(frozen=True, kw_only=True)
class ShadowMetadata(ServicePayload):
    """Per-attribute update timestamps of the desired and reported sections."""
    desired: Optional[Dict[str, Any]] = None
    reported: Optional[Dict[str, Any]] = None


# --- Publish requests ---

@dataclass(frozen=True, kw_only=True)
class GetShadowRequest(ServicePayload):
    thing_name: str = path_param()
    client_token: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class GetNamedShadowRequest(ServicePayload):
    thing_name: str = path_param()
    shadow_name: str = path_param()
    client_token: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class DeleteShadowRequest(ServicePayload):
    thing_name: str = path_param()
    client_token: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class DeleteNamedShadowRequest(ServicePayload):
    thing_name: str = path_param()
    shadow_name: str = path_param()
    client_token: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class UpdateShadowRequest(ServicePayload):
    """
    Requests a change to a classic shadow. ``version`` makes the update
    conditional: the service rejects it unless the shadow is at that version.
    """
    thing_name: str = path_param()
    client_token: Optional[str] = None
    state: Optional[ShadowState] = None
    version: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class UpdateNamedShadowRequest(ServicePayload):
    thing_name: str = path_param()
    shadow_name: str = path_param()
    client_token: Optional[str] = None
    state: Optional[ShadowState] = None
    version: Optional[int] = None


# --- Subscription requests ---

@dataclass(frozen=True, kw_only=True)
class ShadowSubscriptionRequest(ServicePayload):
    """Path parameters selecting a classic shadow topic."""
    thing_name: str = path_param()


@dataclass(frozen=True, kw_only=True)
class NamedShadowSubscriptionRequest(ServicePayload):
    """Path parameters selecting a named shadow topic."""
    thing_name: str = path_param()
    shadow_name: str = path_param()


class GetShadowSubscriptionRequest(ShadowSubscriptionRequest):
    pass


class UpdateShadowSubscriptionRequest(ShadowSubscriptionRequest):
    pass


class DeleteShadowSubscriptionRequest(ShadowSubscriptionRequest):
    pass


class ShadowDeltaUpdatedSubscriptionRequest(ShadowSubscriptionRequest):
    pass


class ShadowUpdatedSubscriptionRequest(ShadowSubscriptionRequest):
    pass


class GetNamedShadowSubscriptionRequest(NamedShadowSubscriptionRequest):
    pass


class UpdateNamedShadowSubscriptionRequest(NamedShadowSubscriptionRequest):
    pass


class DeleteNamedShadowSubscriptionRequest(NamedShadowSubscriptionRequest):
    pass


class NamedShadowDeltaUpdatedSubscriptionRequest(NamedShadowSubscriptionRequest):
    pass


class NamedShadowUpdatedSubscriptionRequest(NamedShadowSubscriptionRequest):
    pass


# --- Responses and events ---

@dataclass(frozen=True, kw_only=True)
class GetShadowResponse(ServicePayload):
    """Payload of the get/accepted topic."""
    client_token: Optional[str] = None
    metadata: Optional[ShadowMetadata] = None
    state: Optional[ShadowStateWithDelta] = None
    timestamp: Optional[int] = None
    version: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class UpdateShadowResponse(ServicePayload):
    """Payload of the update/accepted topic."""
    client_token: Optional[str] = None
    metadata: Optional[ShadowMetadata] = None
    state: Optional[ShadowState] = None
    timestamp: Optional[int] = None
    version: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class DeleteShadowResponse(ServicePayload):
    """Payload of the delete/accepted topic."""
    client_token: Optional[str] = None
    timestamp: Optional[int] = None
    version: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class ErrorResponse(ServicePayload):
    """Payload of every rejected topic. ``code`` is an HTTP-style status."""
    client_token: Optional[str] = None
    code: Optional[int] = None
    message: Optional[str] = None
    timestamp: Optional[int] = None

    def to_error(self) -> ServiceError:
        return ServiceError(self.message or f"Shadow request rejected with code {self.code}",
                            code=self.code, response=self)


@dataclass(frozen=True, kw_only=True)
class ShadowDeltaUpdatedEvent(ServicePayload):
    """
    Sent on update/delta whenever desired and reported disagree. ``state``
    holds only the attributes that differ.
    """
    client_token: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    state: Optional[Dict[str, Any]] = None
    timestamp: Optional[int] = None
    version: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class ShadowUpdatedSnapshot(ServicePayload):
    metadata: Optional[ShadowMetadata] = None
    state: Optional[ShadowState] = None
    version: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class ShadowUpdatedEvent(ServicePayload):
    """Sent on update/documents after every accepted update, with before and after snapshots."""
    current: Optional[ShadowUpdatedSnapshot] = None
    previous: Optional[ShadowUpdatedSnapshot] = None
    timestamp: Optional[int] = None
