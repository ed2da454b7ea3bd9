"""
Error Taxonomy for the Service Clients.

Every failure this package reports derives from `ServiceClientError`, which
pairs a human-readable message with the raw payload involved (if any).

- `TemplateError`: a topic could not be rendered from the request.
- `DecodeError`: an inbound payload was not valid UTF-8 JSON of the expected
  shape. Instances are handed to subscription handlers instead of being raised.
- `ServiceError`: the service answered on a rejected topic.
- `TransportError` and its subclasses: the connection refused an operation.
"""
from typing import Any, Optional


class ServiceClientError(Exception):
    """Base class for errors carrying the payload that caused them."""

    def __init__(self, message: str, payload: Optional[bytes] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, payload={self.payload!r})"


class TemplateError(ServiceClientError, ValueError):
    """A topic placeholder was missing, empty or not a valid topic level."""


class DecodeError(ServiceClientError):
    """
    The error envelope delivered to subscription handlers when an inbound
    message cannot be decoded. `payload` holds the offending bytes untouched.
    """


class ServiceError(ServiceClientError):
    """A well-formed error body returned by the service."""

    def __init__(self, message: str, code: Optional[int] = None, response: Any = None,
                 payload: Optional[bytes] = None):
        super().__init__(message, payload)
        self.code = code
        self.response = response


class TransportError(ServiceClientError):
    """The underlying MQTT connection failed a publish or subscribe."""


class UnsupportedQoSError(TransportError, ValueError):
    """QoS 2 was requested; the service family only accepts 0 and 1."""


class SubscribeError(TransportError):
    """The broker refused a SUBSCRIBE. `handle` is the failed subscription."""

    def __init__(self, message: str, handle: Any = None):
        super().__init__(message)
        self.handle = handle
