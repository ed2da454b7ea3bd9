"""
Topic Template Engine.

Service topics are written as templates such as
``$aws/things/{thingName}/shadow/get``. Rendering substitutes every
``{name}`` placeholder with the matching parameter. Rendering fails fast:
a topic with a missing or unusable parameter is never produced.
"""
import re
from dataclasses import fields, is_dataclass
from functools import lru_cache
from typing import Any, Dict, Mapping, Tuple

from iot_service_mqtt.codec import json_name
from iot_service_mqtt.errors import TemplateError

PLACEHOLDER = re.compile(r"\{(\w+)\}")

# Characters that would change the topic structure if they leaked into a level
_FORBIDDEN = ("/", "+", "#")


def placeholders(template: str) -> Tuple[str, ...]:
    """Returns the placeholder names of a template, in order of appearance."""
    return tuple(PLACEHOLDER.findall(template))


def render(template: str, params: Mapping[str, Any]) -> str:
    """
    Substitutes each ``{name}`` in `template` with ``params[name]``.

    Raises:
        TemplateError: if a placeholder has no value, the value is not a
            non-empty string, or it contains ``/``, ``+`` or ``#``.
    """
    topic = template
    for name in sorted(set(placeholders(template))):
        value = params.get(name)
        if value is None:
            raise TemplateError(f"Missing topic parameter '{name}' for template '{template}'")
        if not isinstance(value, str) or not value:
            raise TemplateError(f"Topic parameter '{name}' must be a non-empty string, got {value!r}")
        if any(c in value for c in _FORBIDDEN):
            raise TemplateError(f"Topic parameter '{name}' contains a reserved character: {value!r}")
        topic = topic.replace("{" + name + "}", value)
    return topic


@lru_cache(maxsize=None)
def path_fields(request_type: type) -> Dict[str, str]:
    """Maps each placeholder name a request type can fill to the field holding its value."""
    if not is_dataclass(request_type):
        return {}
    return {json_name(f): f.name for f in fields(request_type) if f.metadata.get("topic")}


class TopicTemplate:
    """A topic pattern bound to the request type that fills it."""

    pattern: str
    placeholders: Tuple[str, ...]

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.placeholders = placeholders(pattern)

    def __repr__(self) -> str:
        return f"TopicTemplate({self.pattern!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, TopicTemplate) and other.pattern == self.pattern

    def __hash__(self) -> int:
        return hash(self.pattern)

    def check_request_type(self, request_type: type):
        """
        Ensures every placeholder is backed by a path parameter of `request_type`.
        Called once when an operation is declared, so a mismatch is a defect
        caught at import time.
        """
        if not is_dataclass(request_type):
            raise TemplateError(f"{request_type!r} is not a request dataclass")
        missing = set(self.placeholders) - set(path_fields(request_type))
        if missing:
            raise TemplateError(
                f"{request_type.__name__} has no path parameter for {sorted(missing)} in '{self.pattern}'")

    def params_for(self, request: Any) -> Dict[str, Any]:
        # thingName -> request.thing_name
        field_names = path_fields(type(request))
        return {name: getattr(request, field_names[name]) if name in field_names else None
                for name in self.placeholders}

    def render(self, params: Mapping[str, Any]) -> str:
        return render(self.pattern, params)

    def render_for(self, request: Any) -> str:
        return render(self.pattern, self.params_for(request))
