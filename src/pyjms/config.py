"""
Configuration models consumed by the connection, session and consumer layers.

The same parameter dictionary is usually handed to every level (connection,
session, consumer), so each model ignores keys that it does not own. The
connection model is the exception: unknown keys are kept as factory
properties.
"""

from enum import Enum
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pyjms.exceptions import ConfigurationError

# Value of queue_name/topic_name requesting a connection scoped destination
TEMPORARY = ":temporary"


class AckMode(Enum):
    AUTO = "auto"
    CLIENT = "client"
    DUPS_OK = "dups_ok"


class DeliveryMode(Enum):
    # AMQP delivery-mode values
    NON_PERSISTENT = 1
    PERSISTENT = 2


class DestinationKind(Enum):
    QUEUE = "queue"
    TOPIC = "topic"


class ConnectionConfig(BaseModel):
    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    factory: Any = None
    jndi_name: Optional[str] = None
    jndi_context: Optional[dict[str, Any]] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def properties(self) -> dict[str, Any]:
        """Keys that are not connection settings, candidates for the factory."""
        return dict(self.model_extra or {})


class SessionConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transacted: bool = False
    # ignored when transacted
    ack_mode: AckMode = AckMode.AUTO


class DestinationConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    queue_name: Optional[str] = None
    topic_name: Optional[str] = None
    destination: Any = None


class ConsumerConfig(DestinationConfig):
    selector: Optional[str] = None
    no_local: bool = False


class OnMessageConfig(SessionConfig, ConsumerConfig):
    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    session_count: int = Field(default=1, ge=1)
    statistics: bool = False


class EachOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    statistics: bool = False
    # 0 drains without waiting, None blocks for every message
    timeout: Optional[float] = Field(default=0, ge=0)


class SendOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    delivery_mode: Optional[DeliveryMode] = None
    priority: Optional[int] = Field(default=None, ge=0, le=9)
    # seconds
    time_to_live: Optional[float] = Field(default=None, ge=0)


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_config(model: type[ModelT], params: Optional[dict[str, Any]]) -> ModelT:
    """
    Validate a parameter dictionary against one of the configuration models.

    :param model: The model class to build.
    :param params: Raw parameters, typically keyword arguments.
    :return: The validated model.
    :raises ConfigurationError: If validation fails.
    """
    try:
        return model.model_validate(params or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {model.__name__}: {e}") from e
