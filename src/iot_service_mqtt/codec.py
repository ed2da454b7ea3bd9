"""
Payload Codec.

Converts request dataclasses into UTF-8 JSON payloads and inbound payloads back
into response dataclasses.

Field conventions (via `dataclasses.field(metadata=...)`):
- ``topic``: the field is a path parameter. It fills the topic and is left
  out of the JSON body.
- ``local``: the field only steers encoding and is never sent.
- ``null_if``: name of a boolean attribute; when it is true and the field is
  ``None`` the field is sent as JSON ``null`` instead of being omitted.

JSON keys are the camelCase form of the field names. Encoding is plain
`json`; decoding validates through a pydantic `TypeAdapter`, so decode
targets must carry `WIRE_CONFIG` (every `ServicePayload` does).
"""
import json
import logging
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union

from pydantic import ConfigDict, TypeAdapter, ValidationError
from pydantic_core import CoreSchema, core_schema

from iot_service_mqtt.errors import DecodeError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def json_name(f) -> str:
    return camel_case(f.name)


def is_wire_field(f) -> bool:
    """False for path parameters and local flags, which never appear in a payload."""
    return not (f.metadata.get("topic") or f.metadata.get("local"))


# Service payloads use camelCase keys and may grow fields we don't model
WIRE_CONFIG = ConfigDict(alias_generator=camel_case, extra="ignore")


# --- Encoding ---

def to_dict(obj: Any) -> Dict[str, Any]:
    """Returns the JSON body of a dataclass as a plain dict."""
    body: Dict[str, Any] = {}
    for f in fields(obj):
        if not is_wire_field(f):
            continue
        value = getattr(obj, f.name)
        if value is None:
            flag = f.metadata.get("null_if")
            if flag and getattr(obj, flag, False):
                body[json_name(f)] = None
            continue
        body[json_name(f)] = _to_json_value(value)
    return body


def _to_json_value(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return to_dict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_to_json_value(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_json_value(v) for k, v in value.items()}
    return value


def encode(payload: Any) -> bytes:
    """Serializes a request dataclass to UTF-8 JSON bytes."""
    return json.dumps(to_dict(payload)).encode("utf-8")


# --- Decoding ---

@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Either a decoded value or the `DecodeError` explaining why there is none."""
    value: Optional[T] = None
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def wire_only_schema(target: type, schema: CoreSchema) -> CoreSchema:
    """
    Wraps the validation schema of the dataclass `target` so that its path
    parameters and local flags are never read from an inbound payload.
    """
    skipped = frozenset(json_name(f) for f in fields(target) if not is_wire_field(f))
    if not skipped:
        return schema

    def drop_skipped(data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if k not in skipped}
        return data

    return core_schema.no_info_before_validator_function(drop_skipped, schema)


@lru_cache(maxsize=None)
def _adapter(target: type) -> TypeAdapter:
    return TypeAdapter(target)


def decode(payload: Union[bytes, bytearray, str], target: Type[T]) -> DecodeResult[T]:
    """
    Decodes a UTF-8 JSON payload into `target`.

    Never raises for malformed input: invalid UTF-8, invalid JSON and values
    that don't fit the declared field types all come back as
    ``DecodeResult(error=DecodeError(...))`` carrying the original payload.
    Unknown keys are ignored and absent keys keep the field default.
    """
    raw = _raw_bytes(payload)
    if raw is None:
        logger.warning(f"Cannot decode {target.__name__} from a {type(payload).__name__} payload")
        return DecodeResult(error=DecodeError(f"Payload must be bytes or str, got {type(payload).__name__}"))
    try:
        value = _adapter(target).validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Failed to decode {target.__name__} payload: {e}")
        return DecodeResult(error=DecodeError(str(e), raw))
    return DecodeResult(value=value)


def _raw_bytes(payload: Any) -> Optional[bytes]:
    if isinstance(payload, str):
        return payload.encode("utf-8", "surrogatepass")
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    return None
