"""
Broker providers.

Public API:
    - ConnectionFactory and the handle interfaces: what a provider implements
    - AMQPConnectionFactory: provider backed by amqpstorm (RabbitMQ)
"""

from .amqp import AMQPConnectionFactory
from .base import (
    ConnectionFactory,
    ConnectionHandle,
    ConsumerHandle,
    ProducerHandle,
    ProviderMetaData,
    SessionHandle,
)

__all__ = [
    # Interfaces
    "ConnectionFactory",
    "ConnectionHandle",
    "SessionHandle",
    "ConsumerHandle",
    "ProducerHandle",
    "ProviderMetaData",
    # Concrete implementations
    "AMQPConnectionFactory",
]
