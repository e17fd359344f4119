"""
Connection to a message broker through a provider.

A Connection represents the link between this client and the provider. Many
sessions can share one connection, and the connection is the only object
that is safe to use from several threads at once; unit of work control
(commit/rollback) happens per session.

For example, to drain a queue and then disconnect:

    def drain(session):
        return session.consumer(
            lambda consumer: consumer.each(print, statistics=True),
            queue_name="ExampleQueue",
        )

    stats = Connection.start_session(
        drain, factory="pyjms.provider.amqp.AMQPConnectionFactory", hostname="localhost"
    )

Both the session and the connection are closed when ``drain`` returns.
"""

import logging
import threading
from typing import Callable, Optional, TypeVar

from pyjms.config import ConnectionConfig, OnMessageConfig, SessionConfig, parse_config
from pyjms.consumer import Consumer
from pyjms.destination import resolve_destination
from pyjms.exceptions import JMSError
from pyjms.factory import create_connection
from pyjms.listener import ExceptionSink, MessageHandler
from pyjms.provider.base import ConnectionHandle, ExceptionListener, ProviderMetaData
from pyjms.session import Session
from pyjms.statistics import StatisticsSnapshot

T = TypeVar("T")


class _ChildRegistry:
    """Sessions and consumers created by on_message, closed with the connection."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: list[Session] = []
        self._consumers: list[Consumer] = []
        self._closed = False

    def add(self, session: Session, consumer: Consumer) -> bool:
        """Track a pair; False once the registry has been drained."""
        with self._lock:
            if self._closed:
                return False
            self._sessions.append(session)
            self._consumers.append(consumer)
            return True

    def consumers(self) -> list[Consumer]:
        with self._lock:
            return list(self._consumers)

    def drain(self) -> tuple[list[Session], list[Consumer]]:
        with self._lock:
            self._closed = True
            sessions, self._sessions = self._sessions, []
            consumers, self._consumers = self._consumers, []
        return sessions, consumers


class Connection:
    def __init__(self, logger: Optional[logging.Logger] = None, **params) -> None:
        """
        Connect to the provider.

        Delivery to asynchronous listeners only begins after ``start``.

        :param logger: Logger used by this connection and everything it creates.
        :param params: factory | jndi_name + jndi_context, username, password;
            any other key is applied to the factory if it declares it.
        :raises ConfigurationError: If no factory can be selected.
        :raises ConnectionError: If the factory fails or the connect fails.
        """
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._sink = ExceptionSink(self._logger)
        self._children = _ChildRegistry()
        self._lock = threading.Lock()
        self._started = False
        self._closed = False
        self._handle: Optional[ConnectionHandle] = None

        config = parse_config(ConnectionConfig, params)
        handle = create_connection(config, self._logger)
        try:
            handle.set_exception_listener(self._sink.report)
        except Exception:
            self._close_child(handle, "provider connection")
            raise
        self._handle = handle
        self._logger.info("Connection established")

    @classmethod
    def start_connection(
        cls,
        body: Callable[["Connection"], T],
        logger: Optional[logging.Logger] = None,
        **params,
    ) -> T:
        """Connect, start delivery, call ``body`` and always close afterwards."""
        connection = cls(logger=logger, **params)
        try:
            connection.start()
            return body(connection)
        finally:
            connection.close()

    @classmethod
    def start_session(
        cls,
        body: Callable[[Session], T],
        logger: Optional[logging.Logger] = None,
        **params,
    ) -> T:
        """
        Connect, open one session, call ``body`` with it, then close both.

        Meant for the common single-threaded case of one connection and one
        session. ``params`` is shared by the connection and the session.
        """
        return cls.start_connection(
            lambda connection: connection.session(body, **params),
            logger=logger,
            **params,
        )

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start (or resume) delivery to asynchronous listeners."""
        with self._lock:
            self._ensure_open()
            if self._started:
                return
            self._handle.start()
            self._started = True
        self._logger.info("Connection started")

    def stop(self) -> None:
        """
        Pause delivery to asynchronous listeners, for example during a
        configuration change. Synchronous receive calls are unaffected.
        """
        with self._lock:
            self._ensure_open()
            if not self._started:
                return
            self._handle.stop()
            self._started = False
        self._logger.info("Connection stopped")

    def create_session(self, **params) -> Session:
        """
        Create a session. The caller must close it; prefer ``session``.

        :param params: transacted (default False), ack_mode (default AUTO,
            ignored when transacted). Other keys are ignored.
        """
        config = parse_config(SessionConfig, params)
        self._ensure_open()
        handle = self._handle.create_session(config.transacted, config.ack_mode)
        self._logger.debug(
            "Session created transacted=%s ack_mode=%s",
            config.transacted,
            config.ack_mode.value,
        )
        return Session(handle, config.ack_mode, self._sink, logger=self._logger)

    def session(self, body: Callable[[Session], T], **params) -> T:
        """Create a session, call ``body`` with it and always close it afterwards."""
        with self.create_session(**params) as session:
            return body(session)

    def on_message(self, handler: MessageHandler, **params) -> None:
        """
        Receive messages asynchronously on provider threads.

        Creates ``session_count`` sessions, each with its own consumer on the
        same destination, and installs ``handler`` on every consumer before
        returning. The handler is called from several threads at once when
        session_count > 1 and must be thread safe.

        On transacted sessions the handler returns ListenerResult.COMMIT or
        ListenerResult.ROLLBACK (or True/False); a raised exception rolls
        back. Failures are passed to the exception listener, see
        ``on_exception``.

        :param handler: Called once per message.
        :param params: Session and destination parameters, plus
            session_count (default 1) and statistics (default False).
        :raises ConfigurationError: For invalid parameters, before any
            session is created.
        """
        config = parse_config(OnMessageConfig, params)
        destination = resolve_destination(config)
        self._ensure_open()

        for _ in range(config.session_count):
            session = self.create_session(
                transacted=config.transacted, ack_mode=config.ack_mode
            )
            try:
                consumer = session.create_consumer(
                    queue_name=config.queue_name,
                    topic_name=config.topic_name,
                    destination=config.destination,
                    selector=config.selector,
                    no_local=config.no_local,
                )
                consumer.on_message(handler, statistics=config.statistics)
            except Exception:
                session.close()
                raise

            if not self._children.add(session, consumer):
                consumer.close()
                session.close()
                raise JMSError("Connection was closed while registering message listeners")

        self._logger.info(
            "%d message listener session(s) registered on %s",
            config.session_count,
            destination,
        )

    def on_message_statistics(self) -> list[StatisticsSnapshot]:
        """Statistics for every consumer created by ``on_message``."""
        return [consumer.statistics() for consumer in self._children.consumers()]

    @property
    def exception_listener(self) -> Optional[ExceptionListener]:
        return self._sink.listener

    @exception_listener.setter
    def exception_listener(self, listener: Optional[ExceptionListener]) -> None:
        self._sink.listener = listener

    def on_exception(self, handler: ExceptionListener) -> None:
        """
        Call ``handler`` whenever a failure happens away from the caller.

        Covers provider connection failures and every failure raised by an
        ``on_message`` handler. Without a handler such failures are logged.
        """
        self._sink.listener = handler

    @property
    def client_id(self) -> Optional[str]:
        self._ensure_open()
        return self._handle.client_id

    @client_id.setter
    def client_id(self, value: str) -> None:
        self._ensure_open()
        self._handle.client_id = value

    def meta_data(self) -> ProviderMetaData:
        self._ensure_open()
        return self._handle.meta_data()

    def close(self) -> None:
        """
        Close the connection.

        Consumers and sessions created by ``on_message`` are closed first,
        then the provider connection. Safe to call more than once.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        sessions, consumers = self._children.drain()
        for consumer in consumers:
            self._close_child(consumer, "consumer")
        for session in sessions:
            self._close_child(session, "session")

        if self._handle is not None:
            try:
                self._handle.close()
            except Exception as e:
                self._logger.exception("Error closing provider connection: %s", e)

        self._logger.info(
            "Connection closed (%d session(s), %d consumer(s) released)",
            len(sessions),
            len(consumers),
        )

    def _close_child(self, child, kind: str) -> None:
        try:
            child.close()
        except Exception as e:
            self._logger.exception("Error closing %s: %s", kind, e)

    def _ensure_open(self) -> None:
        if self._closed:
            raise JMSError("Connection is closed")

    def __str__(self) -> str:
        if self._closed or self._handle is None:
            return "Connection (closed)"
        meta = self._handle.meta_data()
        return (
            f"Connection provider: {meta.provider_name} v{meta.provider_version}, "
            f"spec v{meta.spec_version}"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
