"""Tagged representation of parsed JSON.

Provider responses have no fixed schema, so they are converted once, at the
HTTP boundary, into this closed set of variants.  Everything downstream
(the response extractor in particular) pattern-matches on the variants
instead of probing Python types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class JsonNull:
    """JSON ``null``."""


@dataclass(frozen=True)
class JsonBool:
    value: bool


@dataclass(frozen=True)
class JsonNumber:
    value: int | float


@dataclass(frozen=True)
class JsonString:
    value: str


@dataclass(frozen=True)
class JsonArray:
    items: tuple[JsonValue, ...] = ()


@dataclass(frozen=True)
class JsonObject:
    """JSON object; member order follows the source document."""

    members: dict[str, JsonValue] = field(default_factory=dict)

    def get(self, key: str) -> JsonValue | None:
        return self.members.get(key)


JsonValue = Union[JsonNull, JsonBool, JsonNumber, JsonString, JsonArray, JsonObject]


def from_python(obj: Any) -> JsonValue:
    """Convert the output of :func:`json.loads` into a :data:`JsonValue`.

    Raises:
        TypeError: If ``obj`` contains a value JSON cannot represent.
    """
    match obj:
        case None:
            return JsonNull()
        case bool():
            return JsonBool(obj)
        case int() | float():
            return JsonNumber(obj)
        case str():
            return JsonString(obj)
        case list() | tuple():
            return JsonArray(tuple(from_python(item) for item in obj))
        case dict():
            return JsonObject({str(key): from_python(value) for key, value in obj.items()})
        case _:
            raise TypeError(f"Not a JSON value: {type(obj).__name__}")


def to_python(value: JsonValue) -> Any:
    """Convert a :data:`JsonValue` back into plain Python containers."""
    match value:
        case JsonNull():
            return None
        case JsonBool(flag):
            return flag
        case JsonNumber(number):
            return number
        case JsonString(text):
            return text
        case JsonArray(items):
            return [to_python(item) for item in items]
        case JsonObject(members):
            return {key: to_python(member) for key, member in members.items()}


def string_value(value: JsonValue | None) -> str | None:
    """Return the text of a non-empty :class:`JsonString`, else ``None``."""
    match value:
        case JsonString(text) if text:
            return text
        case _:
            return None


def is_truthy(value: JsonValue | None) -> bool:
    """JavaScript-style truthiness, used where providers rely on it."""
    match value:
        case None | JsonNull():
            return False
        case JsonBool(flag):
            return flag
        case JsonNumber(number):
            return number != 0
        case JsonString(text):
            return bool(text)
        case _:
            return True
