"""
Destination addressing.

A destination request names exactly one of a queue, a topic or an explicit
provider destination. Whatever was requested, the result exposes the same
two operations, so consumers and producers never care whether they talk to
a queue or a topic.
"""

import abc
import logging
from dataclasses import dataclass
from typing import Any

from pyjms.config import TEMPORARY, DestinationConfig, DestinationKind
from pyjms.exceptions import ConfigurationError
from pyjms.provider.base import SessionHandle

logger = logging.getLogger(__name__)


class Destination(abc.ABC):
    @abc.abstractmethod
    def resolve(self, session: SessionHandle) -> Any:
        """Return the provider destination for this address."""
        pass

    def resolve_for_consumer(self, session: SessionHandle) -> Any:
        return self.resolve(session)

    def resolve_for_producer(self, session: SessionHandle) -> Any:
        return self.resolve(session)


@dataclass(frozen=True)
class Queue(Destination):
    name: str

    def resolve(self, session: SessionHandle) -> Any:
        return session.create_queue(self.name)


@dataclass(frozen=True)
class Topic(Destination):
    name: str

    def resolve(self, session: SessionHandle) -> Any:
        return session.create_topic(self.name)


@dataclass(frozen=True)
class Temporary(Destination):
    """Connection scoped destination named by the provider."""

    kind: DestinationKind

    def resolve(self, session: SessionHandle) -> Any:
        if self.kind is DestinationKind.QUEUE:
            return session.create_temporary_queue()
        return session.create_temporary_topic()


@dataclass(frozen=True)
class Explicit(Destination):
    """A provider destination handed in by the caller, used unchanged."""

    handle: Any

    def resolve(self, session: SessionHandle) -> Any:
        return self.handle


def resolve_destination(config: DestinationConfig) -> Destination:
    """
    Pick the destination variant for a request.

    Order: explicit destination, then queue name, then topic name.

    :param config: The destination request.
    :return: The destination to resolve against a session.
    :raises ConfigurationError: If both a queue and a topic name are given,
        or nothing is given at all.
    """
    if config.queue_name is not None and config.topic_name is not None:
        raise ConfigurationError(
            "Only one of 'queue_name' or 'topic_name' may be supplied, "
            f"got queue_name={config.queue_name!r} topic_name={config.topic_name!r}"
        )

    if config.destination is not None:
        destination: Destination = Explicit(config.destination)
    elif config.queue_name is not None:
        if config.queue_name == TEMPORARY:
            destination = Temporary(DestinationKind.QUEUE)
        else:
            destination = Queue(config.queue_name)
    elif config.topic_name is not None:
        if config.topic_name == TEMPORARY:
            destination = Temporary(DestinationKind.TOPIC)
        else:
            destination = Topic(config.topic_name)
    else:
        raise ConfigurationError(
            "Missing mandatory parameter: one of 'queue_name', 'topic_name' "
            "or 'destination' must be supplied"
        )

    logger.debug("Resolved destination request to %s", destination)
    return destination
