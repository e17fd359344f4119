"""
In-memory provider for tests and local development.

Public API:
    - MockBroker: routes messages between mock connections in one process
    - MockConnectionFactory: connection factory backed by a MockBroker
    - MockDestination: destination handle of the mock provider
"""

from .broker import MockBroker, MockDestination, parse_selector
from .provider import (
    MockConnectionFactory,
    MockConnectionHandle,
    MockConsumerHandle,
    MockProducerHandle,
    MockSessionHandle,
)

__all__ = [
    "MockBroker",
    "MockDestination",
    "parse_selector",
    "MockConnectionFactory",
    "MockConnectionHandle",
    "MockSessionHandle",
    "MockConsumerHandle",
    "MockProducerHandle",
]
