"""
pyjms: connections, sessions, consumers and producers over a pluggable
message broker provider.

Public API:
    - Connection: entry point, see ``Connection.start_session``
    - Session, Consumer, Producer: created from a connection
    - Message, create_message: message construction
    - ListenerResult: outcome returned by transacted ``on_message`` handlers
"""

from .config import TEMPORARY, AckMode, DeliveryMode, DestinationKind
from .connection import Connection
from .consumer import Consumer
from .destination import Destination
from .exceptions import (
    ConfigurationError,
    ConnectionError,
    DeliveryError,
    JMSError,
    TransactionError,
)
from .listener import ListenerResult
from .message import Message, MessageType, create_message
from .producer import Producer
from .session import Session
from .statistics import StatisticsSnapshot

__version__ = "0.1.0"

__all__ = [
    "Connection",
    "Session",
    "Consumer",
    "Producer",
    "Destination",
    "Message",
    "MessageType",
    "create_message",
    "ListenerResult",
    "StatisticsSnapshot",
    # Configuration
    "TEMPORARY",
    "AckMode",
    "DeliveryMode",
    "DestinationKind",
    # Exceptions
    "JMSError",
    "ConfigurationError",
    "ConnectionError",
    "TransactionError",
    "DeliveryError",
]
