"""
Message value passed between producers and consumers.

A Message carries a typed payload plus user properties and the headers a
provider fills in on delivery. Map payloads follow fixed conversion rules so
that every provider sees the same primitive types:

    int       -> long (64-bit, out of range is an error)
    float     -> double
    bool      -> boolean
    None      -> null
    otherwise -> string (via str())
"""

import datetime
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional

from pyjms.config import DeliveryMode

LONG_MIN = -(2**63)
LONG_MAX = 2**63 - 1


class MessageType(Enum):
    TEXT = "text"
    MAP = "map"
    OBJECT = "object"
    BYTES = "bytes"
    STREAM = "stream"


class MapValueType(Enum):
    LONG = "long"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    NULL = "null"
    STRING = "string"


def to_map_value(value: Any) -> tuple[MapValueType, Any]:
    """
    Convert a Python value to the typed primitive stored in a map payload.

    :param value: Any Python value.
    :return: Tuple of the primitive type and the converted value.
    :raises ValueError: If an integer does not fit in 64 bits.
    """
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return MapValueType.BOOLEAN, value
    if isinstance(value, int):
        if not LONG_MIN <= value <= LONG_MAX:
            raise ValueError(f"Integer {value} does not fit in a 64-bit long")
        return MapValueType.LONG, value
    if isinstance(value, float):
        return MapValueType.DOUBLE, value
    if value is None:
        return MapValueType.NULL, None
    return MapValueType.STRING, str(value)


@dataclass
class Message:
    type: MessageType
    body: Any
    properties: dict[str, Any] = field(default_factory=dict)

    # headers, normally set by the provider
    message_id: Optional[str] = None
    correlation_id: Optional[str] = None
    reply_to: Optional[str] = None
    timestamp: Optional[datetime.datetime] = None
    destination: Optional[str] = None
    delivery_mode: Optional[DeliveryMode] = None
    priority: Optional[int] = None
    redelivered: bool = False

    _acknowledger: Optional[Callable[[], None]] = field(
        default=None, repr=False, compare=False
    )

    @classmethod
    def create_text(cls, text: str, **properties) -> "Message":
        return cls(MessageType.TEXT, str(text), properties)

    @classmethod
    def create_map(cls, data: dict, **properties) -> "Message":
        body = {str(key): to_map_value(value)[1] for key, value in data.items()}
        return cls(MessageType.MAP, body, properties)

    @classmethod
    def create_bytes(cls, data: bytes, **properties) -> "Message":
        return cls(MessageType.BYTES, bytes(data), properties)

    @classmethod
    def create_stream(cls, values: list, **properties) -> "Message":
        return cls(MessageType.STREAM, list(values), properties)

    @classmethod
    def create_object(cls, obj: Any, **properties) -> "Message":
        return cls(MessageType.OBJECT, obj, properties)

    @property
    def data(self) -> Any:
        """The payload; map messages return a copy of the map."""
        if self.type is MessageType.MAP:
            return dict(self.body)
        return self.body

    @property
    def text(self) -> str:
        if self.type is not MessageType.TEXT:
            raise TypeError(f"{self.type.value} message has no text payload")
        return self.body

    def typed_map(self) -> dict[str, tuple[MapValueType, Any]]:
        """Map payload as ``{name: (MapValueType, value)}`` for providers to encode."""
        if self.type is not MessageType.MAP:
            raise TypeError(f"{self.type.value} message has no map payload")
        return {key: to_map_value(value) for key, value in self.body.items()}

    def acknowledge(self) -> None:
        """
        Acknowledge this message and every earlier one received by its session.

        Only meaningful on sessions using AckMode.CLIENT; a no-op otherwise.
        """
        if self._acknowledger is not None:
            self._acknowledger()


def create_message(data: Any, **properties) -> Message:
    """
    Build a Message from plain data, choosing the type from the Python type.

    str -> text, dict -> map, bytes -> bytes, list/tuple -> stream,
    anything else -> object. A Message is returned unchanged, or as a copy
    carrying the extra properties when any are given.
    """
    if isinstance(data, Message):
        if not properties:
            return data
        return replace(data, properties={**data.properties, **properties})
    if isinstance(data, str):
        return Message.create_text(data, **properties)
    if isinstance(data, dict):
        return Message.create_map(data, **properties)
    if isinstance(data, (bytes, bytearray)):
        return Message.create_bytes(data, **properties)
    if isinstance(data, (list, tuple)):
        return Message.create_stream(data, **properties)
    return Message.create_object(data, **properties)
