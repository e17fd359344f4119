"""
Mock provider: a working in-memory implementation of the provider interfaces.

Every handle records how it was used (commit/rollback/close counts, the
order of transaction outcomes, deliveries) so tests can verify exactly what
the pyjms core asked of its provider.
"""

import logging
import threading
import uuid
from typing import Any, Optional

from pyjms.config import AckMode, DeliveryMode, DestinationKind
from pyjms.exceptions import ConfigurationError, JMSError
from pyjms.message import Message
from pyjms.mock.broker import (
    Envelope,
    MessagePredicate,
    MessageStore,
    MockBroker,
    MockDestination,
    Subscription,
    parse_selector,
)
from pyjms.provider.base import (
    ConnectionFactory,
    ConnectionHandle,
    ConsumerHandle,
    ExceptionListener,
    MessageListener,
    ProducerHandle,
    ProviderMetaData,
    SessionHandle,
)

logger = logging.getLogger(__name__)

# poll interval of dispatcher threads and indefinite receives
_TICK = 0.05


class MockConsumerHandle(ConsumerHandle):
    def __init__(
        self,
        session: "MockSessionHandle",
        destination: MockDestination,
        store: MessageStore,
        predicate: Optional[MessagePredicate] = None,
        subscription: Optional[Subscription] = None,
    ) -> None:
        self.session = session
        self.destination = destination
        self.close_count = 0
        self.delivered_count = 0
        self.is_closed = False
        self._store = store
        self._predicate = predicate
        self._subscription = subscription
        self._listener: Optional[MessageListener] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def receive(self, timeout: Optional[float] = None) -> Optional[Message]:
        if self.is_closed:
            raise JMSError("Consumer is closed")
        if timeout is not None:
            envelope = self._store.get(timeout, self._predicate)
        else:
            envelope = None
            while envelope is None and not self.is_closed:
                envelope = self._store.get(_TICK, self._predicate)
        if envelope is None:
            return None
        return self.session.record_receipt(self._store, envelope)

    def receive_no_wait(self) -> Optional[Message]:
        return self.receive(0)

    def set_message_listener(self, listener: MessageListener) -> None:
        self._listener = listener
        self._thread = threading.Thread(
            target=self._dispatch_loop,
            name=f"mock-consumer-{self.destination.name}",
            daemon=True,
        )
        self._thread.start()

    def _dispatch_loop(self) -> None:
        connection = self.session.connection
        broker = connection.broker
        while not self._stop.is_set():
            if not connection.wait_until_started(_TICK):
                if connection.is_closed:
                    break
                continue
            envelope = self._store.get(_TICK, self._predicate)
            if envelope is None:
                continue
            if self._stop.is_set():
                broker.requeue(self._store, envelope)
                break

            message = self.session.record_receipt(self._store, envelope)
            self.delivered_count += 1
            handled = self._listener(message)
            if (
                not handled
                and not self.session.transacted
                and self.session.ack_mode is AckMode.AUTO
                and broker.redeliver
            ):
                broker.requeue(self._store, envelope)

    def close(self) -> None:
        self.close_count += 1
        self.release()

    def release(self) -> None:
        if self.is_closed:
            return
        self.is_closed = True
        self._stop.set()
        if self._subscription is not None:
            self.session.connection.broker.unsubscribe(self._subscription)
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=5.0)


class MockProducerHandle(ProducerHandle):
    def __init__(self, session: "MockSessionHandle", destination: MockDestination) -> None:
        self.session = session
        self.destination = destination
        self.sent: list[Message] = []
        self.close_count = 0

    def send(
        self,
        message: Message,
        delivery_mode: Optional[DeliveryMode] = None,
        priority: Optional[int] = None,
        time_to_live: Optional[float] = None,
    ) -> None:
        if self.session.is_closed:
            raise JMSError("Session is closed")
        if message.message_id is None:
            message.message_id = uuid.uuid4().hex
        message.destination = self.destination.name
        self.sent.append(message)
        self.session.send(self.destination, message, delivery_mode, priority, time_to_live)

    def close(self) -> None:
        self.close_count += 1


class MockSessionHandle(SessionHandle):
    def __init__(
        self, connection: "MockConnectionHandle", transacted: bool, ack_mode: AckMode
    ) -> None:
        self.connection = connection
        self.ack_mode = ack_mode
        self.commit_count = 0
        self.rollback_count = 0
        self.close_count = 0
        # "commit" / "rollback" in the order they happened
        self.outcomes: list[str] = []
        self.fail_commit: Optional[Exception] = None
        self.consumers: list[MockConsumerHandle] = []
        self.producers: list[MockProducerHandle] = []
        self.is_closed = False
        self._transacted = transacted
        self._lock = threading.Lock()
        self._pending_sends: list[tuple[MockDestination, Message, dict[str, Any]]] = []
        self._received: list[tuple[MessageStore, Envelope]] = []
        self._unacknowledged: list[tuple[MessageStore, Envelope]] = []

    @property
    def transacted(self) -> bool:
        return self._transacted

    @property
    def broker(self) -> MockBroker:
        return self.connection.broker

    def create_queue(self, name: str) -> MockDestination:
        self.broker.queue(name)
        return MockDestination(DestinationKind.QUEUE, name)

    def create_topic(self, name: str) -> MockDestination:
        self.broker.declare_topic(name)
        return MockDestination(DestinationKind.TOPIC, name)

    def create_temporary_queue(self) -> MockDestination:
        return self.broker.create_temporary(DestinationKind.QUEUE, self.connection.connection_id)

    def create_temporary_topic(self) -> MockDestination:
        return self.broker.create_temporary(DestinationKind.TOPIC, self.connection.connection_id)

    def create_consumer(
        self, destination: Any, selector: Optional[str] = None, no_local: bool = False
    ) -> MockConsumerHandle:
        destination = self._check_destination(destination)
        predicate = parse_selector(selector)

        if destination.kind is DestinationKind.QUEUE:
            consumer = MockConsumerHandle(
                self, destination, self.broker.queue(destination.name), predicate
            )
        else:
            subscription = self.broker.subscribe(
                destination.name, self.connection.connection_id, no_local
            )
            consumer = MockConsumerHandle(
                self, destination, subscription.store, predicate, subscription
            )
        self.consumers.append(consumer)
        return consumer

    def create_producer(self, destination: Any) -> MockProducerHandle:
        producer = MockProducerHandle(self, self._check_destination(destination))
        self.producers.append(producer)
        return producer

    def _check_destination(self, destination: Any) -> MockDestination:
        if not isinstance(destination, MockDestination):
            raise ConfigurationError(
                f"Expected a MockDestination, got {type(destination).__name__}"
            )
        if destination.temporary and not self.broker.has_destination(destination):
            raise JMSError(f"Temporary destination {destination.name} no longer exists")
        return destination

    def send(
        self,
        destination: MockDestination,
        message: Message,
        delivery_mode: Optional[DeliveryMode],
        priority: Optional[int],
        time_to_live: Optional[float],
    ) -> None:
        options = {
            "delivery_mode": delivery_mode,
            "priority": priority,
            "time_to_live": time_to_live,
        }
        if self._transacted:
            with self._lock:
                self._pending_sends.append((destination, message, options))
            return
        self.broker.publish(destination, message, self.connection.connection_id, **options)

    def record_receipt(self, store: MessageStore, envelope: Envelope) -> Message:
        message = envelope.message
        if self._transacted:
            with self._lock:
                self._received.append((store, envelope))
        elif self.ack_mode is AckMode.CLIENT:
            with self._lock:
                self._unacknowledged.append((store, envelope))
            message._acknowledger = self._acknowledge
        return message

    def _acknowledge(self) -> None:
        with self._lock:
            self._unacknowledged.clear()

    def commit(self) -> None:
        if self.fail_commit is not None:
            raise self.fail_commit
        with self._lock:
            self.commit_count += 1
            self.outcomes.append("commit")
            pending, self._pending_sends = self._pending_sends, []
            self._received.clear()
        for destination, message, options in pending:
            self.broker.publish(
                destination, message, self.connection.connection_id, **options
            )

    def rollback(self) -> None:
        with self._lock:
            self.rollback_count += 1
            self.outcomes.append("rollback")
            self._pending_sends.clear()
            received, self._received = self._received, []
        self._return(received)

    def _return(self, envelopes: list[tuple[MessageStore, Envelope]]) -> None:
        if not self.broker.redeliver:
            return
        # front of the queue, in receive order
        for store, envelope in reversed(envelopes):
            self.broker.requeue(store, envelope)

    def close(self) -> None:
        self.close_count += 1
        self.release()

    def release(self) -> None:
        """Free resources; also called when the connection goes away."""
        if self.is_closed:
            return
        self.is_closed = True
        for consumer in self.consumers:
            consumer.release()
        with self._lock:
            self._pending_sends.clear()
            outstanding = self._received + self._unacknowledged
            self._received, self._unacknowledged = [], []
        self._return(outstanding)


class MockConnectionHandle(ConnectionHandle):
    def __init__(
        self,
        broker: MockBroker,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self.broker = broker
        self.username = username
        self.password = password
        self.connection_id = uuid.uuid4().hex
        self.start_count = 0
        self.stop_count = 0
        self.close_count = 0
        self.sessions: list[MockSessionHandle] = []
        self.is_closed = False
        self._lock = threading.Lock()
        self._delivery_enabled = threading.Event()
        self._exception_listener: Optional[ExceptionListener] = None
        self._client_id: Optional[str] = None

    @property
    def is_started(self) -> bool:
        return self._delivery_enabled.is_set()

    def start(self) -> None:
        self.start_count += 1
        self._delivery_enabled.set()

    def stop(self) -> None:
        self.stop_count += 1
        self._delivery_enabled.clear()

    def wait_until_started(self, timeout: Optional[float] = None) -> bool:
        return self._delivery_enabled.wait(timeout) and not self.is_closed

    def create_session(self, transacted: bool, ack_mode: AckMode) -> MockSessionHandle:
        if self.is_closed:
            raise JMSError("Connection is closed")
        session = MockSessionHandle(self, transacted, ack_mode)
        with self._lock:
            self.sessions.append(session)
        return session

    def set_exception_listener(self, listener: Optional[ExceptionListener]) -> None:
        self._exception_listener = listener

    def raise_exception(self, error: BaseException) -> None:
        """Simulate a provider-side connection failure."""
        if self._exception_listener is not None:
            self._exception_listener(error)

    @property
    def client_id(self) -> Optional[str]:
        return self._client_id

    @client_id.setter
    def client_id(self, value: str) -> None:
        self._client_id = value

    def meta_data(self) -> ProviderMetaData:
        return ProviderMetaData("pyjms mock", "1.0", "1.1")

    def close(self) -> None:
        self.close_count += 1
        if self.is_closed:
            return
        self.is_closed = True
        # wake dispatchers waiting for start()
        self._delivery_enabled.set()
        with self._lock:
            sessions = list(self.sessions)
        for session in sessions:
            session.release()
        self.broker.release_connection(self.connection_id)


class MockConnectionFactory(ConnectionFactory):
    """
    Factory for mock connections sharing one MockBroker.

    Set ``fail_connect`` to an exception to make the next connects fail.
    """

    PROPERTIES = {
        "broker_url": "broker_url",
        "client_name": "client_name",
    }

    def __init__(self, broker: Optional[MockBroker] = None) -> None:
        self.broker = broker or MockBroker()
        self.broker_url: Optional[str] = None
        self.client_name: Optional[str] = None
        self.fail_connect: Optional[Exception] = None
        self.connections: list[MockConnectionHandle] = []

    def create_connection(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> MockConnectionHandle:
        if self.fail_connect is not None:
            raise self.fail_connect
        connection = MockConnectionHandle(self.broker, username, password)
        self.connections.append(connection)
        logger.debug("Mock connection %s created", connection.connection_id)
        return connection
