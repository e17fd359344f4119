"""In-process broker used by the mock provider."""

import dataclasses
import datetime
import logging
import re
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pyjms.config import DeliveryMode, DestinationKind
from pyjms.exceptions import ConfigurationError
from pyjms.message import Message

logger = logging.getLogger(__name__)

_CLAUSE = re.compile(
    r"^\s*(?P<key>[A-Za-z_][\w.]*)\s*=\s*(?P<value>'[^']*'|-?\d+(?:\.\d+)?|TRUE|FALSE)\s*$",
    re.IGNORECASE,
)
_AND = re.compile(r"\s+AND\s+", re.IGNORECASE)

MessagePredicate = Callable[[Message], bool]


def parse_selector(selector: Optional[str]) -> Optional[MessagePredicate]:
    """
    Compile a selector of ``key = value`` clauses joined by AND.

    Values are quoted strings, numbers, TRUE or FALSE.

    :raises ConfigurationError: For anything else.
    """
    if not selector:
        return None

    expected: dict[str, Any] = {}
    for clause in _AND.split(selector.strip()):
        match = _CLAUSE.match(clause)
        if match is None:
            raise ConfigurationError(f"Unsupported selector clause: {clause!r}")
        raw = match.group("value")
        if raw.startswith("'"):
            value: Any = raw[1:-1]
        elif raw.upper() in ("TRUE", "FALSE"):
            value = raw.upper() == "TRUE"
        elif "." in raw:
            value = float(raw)
        else:
            value = int(raw)
        expected[match.group("key")] = value

    def matches(message: Message) -> bool:
        return all(
            key in message.properties and message.properties[key] == value
            for key, value in expected.items()
        )

    return matches


@dataclass(frozen=True)
class MockDestination:
    kind: DestinationKind
    name: str
    temporary: bool = False


@dataclass
class Envelope:
    message: Message
    origin: Optional[str] = None
    # time.monotonic() deadline
    expires: Optional[float] = None

    def expired(self) -> bool:
        return self.expires is not None and time.monotonic() >= self.expires


class MessageStore:
    """FIFO of envelopes with blocking, filtered reads."""

    def __init__(self) -> None:
        self._envelopes: deque[Envelope] = deque()
        self._condition = threading.Condition()

    def put(self, envelope: Envelope, front: bool = False) -> None:
        with self._condition:
            if front:
                self._envelopes.appendleft(envelope)
            else:
                self._envelopes.append(envelope)
            self._condition.notify_all()

    def get(
        self,
        timeout: Optional[float] = 0,
        predicate: Optional[MessagePredicate] = None,
    ) -> Optional[Envelope]:
        """
        Remove and return the first matching envelope.

        :param timeout: 0 returns immediately, None waits indefinitely.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._condition:
            while True:
                envelope = self._take(predicate)
                if envelope is not None:
                    return envelope
                if deadline is None:
                    self._condition.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._condition.wait(remaining)

    def _take(self, predicate: Optional[MessagePredicate]) -> Optional[Envelope]:
        for envelope in list(self._envelopes):
            if envelope.expired():
                self._envelopes.remove(envelope)
                continue
            if predicate is None or predicate(envelope.message):
                self._envelopes.remove(envelope)
                return envelope
        return None

    def messages(self) -> list[Message]:
        with self._condition:
            return [envelope.message for envelope in self._envelopes]

    def __len__(self) -> int:
        with self._condition:
            return len(self._envelopes)


@dataclass(eq=False)
class Subscription:
    topic: str
    connection_id: str
    no_local: bool = False
    store: MessageStore = field(default_factory=MessageStore)


class MockBroker:
    """
    Routes messages between mock connections in the same process.

    :param redeliver: Put rolled back messages back on their destination.
        Switch off to count rollbacks deterministically in tests.
    """

    def __init__(self, redeliver: bool = True) -> None:
        self.redeliver = redeliver
        self._lock = threading.Lock()
        self._queues: dict[str, MessageStore] = {}
        self._topics: dict[str, list[Subscription]] = {}
        self._temporary: dict[str, list[MockDestination]] = {}

    def queue(self, name: str) -> MessageStore:
        with self._lock:
            if name not in self._queues:
                self._queues[name] = MessageStore()
            return self._queues[name]

    def declare_topic(self, name: str) -> None:
        with self._lock:
            self._topics.setdefault(name, [])

    def has_destination(self, destination: MockDestination) -> bool:
        with self._lock:
            if destination.kind is DestinationKind.QUEUE:
                return destination.name in self._queues
            return destination.name in self._topics

    def create_temporary(self, kind: DestinationKind, connection_id: str) -> MockDestination:
        destination = MockDestination(kind, f"tmp.{kind.value}.{uuid.uuid4().hex}", True)
        if kind is DestinationKind.QUEUE:
            self.queue(destination.name)
        else:
            self.declare_topic(destination.name)
        with self._lock:
            self._temporary.setdefault(connection_id, []).append(destination)
        return destination

    def release_connection(self, connection_id: str) -> None:
        """Delete the temporary destinations and subscriptions of a connection."""
        with self._lock:
            for destination in self._temporary.pop(connection_id, []):
                if destination.kind is DestinationKind.QUEUE:
                    self._queues.pop(destination.name, None)
                else:
                    self._topics.pop(destination.name, None)
                logger.debug("Temporary destination %s deleted", destination.name)
            for subscriptions in self._topics.values():
                subscriptions[:] = [
                    sub for sub in subscriptions if sub.connection_id != connection_id
                ]

    def subscribe(self, topic: str, connection_id: str, no_local: bool = False) -> Subscription:
        subscription = Subscription(topic, connection_id, no_local)
        with self._lock:
            self._topics.setdefault(topic, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscriptions = self._topics.get(subscription.topic, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)

    def publish(
        self,
        destination: MockDestination,
        message: Message,
        origin: Optional[str] = None,
        delivery_mode: Optional[DeliveryMode] = None,
        priority: Optional[int] = None,
        time_to_live: Optional[float] = None,
    ) -> Message:
        """Store a copy of ``message`` on the destination and return the copy."""
        stored = dataclasses.replace(
            message,
            properties=dict(message.properties),
            message_id=message.message_id or uuid.uuid4().hex,
            timestamp=datetime.datetime.now(datetime.timezone.utc),
            destination=destination.name,
            delivery_mode=delivery_mode,
            priority=priority,
            redelivered=False,
            _acknowledger=None,
        )
        expires = time.monotonic() + time_to_live if time_to_live else None

        if destination.kind is DestinationKind.QUEUE:
            self.queue(destination.name).put(Envelope(stored, origin, expires))
        else:
            with self._lock:
                subscriptions = list(self._topics.get(destination.name, []))
            for subscription in subscriptions:
                if subscription.no_local and subscription.connection_id == origin:
                    continue
                subscription.store.put(
                    Envelope(dataclasses.replace(stored), origin, expires)
                )
        logger.debug("Message %s stored on %s", stored.message_id, destination.name)
        return stored

    def requeue(self, store: MessageStore, envelope: Envelope) -> None:
        envelope.message = dataclasses.replace(
            envelope.message, redelivered=True, _acknowledger=None
        )
        store.put(envelope, front=True)

    def pending(self, queue_name: str) -> list[Message]:
        """Messages waiting on a queue, oldest first."""
        return self.queue(queue_name).messages()
