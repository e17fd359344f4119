"""
Session: the unit-of-work boundary.

A session carries the transaction mode and acknowledge mode and creates the
consumers and producers that work within it. A session, and everything
created from it, must only ever be used by one thread. Create one session
per thread; the Connection is the object to share.
"""

import logging
from typing import Any, Callable, TypeVar

from pyjms.config import AckMode, ConsumerConfig, DestinationConfig, parse_config
from pyjms.consumer import Consumer
from pyjms.destination import resolve_destination
from pyjms.exceptions import TransactionError
from pyjms.listener import ExceptionSink
from pyjms.message import Message, create_message
from pyjms.producer import Producer
from pyjms.provider.base import SessionHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Session:
    def __init__(
        self,
        handle: SessionHandle,
        ack_mode: AckMode,
        sink: ExceptionSink,
        logger: logging.Logger = logger,
    ) -> None:
        self._handle = handle
        self._ack_mode = ack_mode
        self._sink = sink
        self._logger = logger
        self._closed = False

    @property
    def transacted(self) -> bool:
        return self._handle.transacted

    @property
    def ack_mode(self) -> AckMode:
        return self._ack_mode

    @property
    def is_closed(self) -> bool:
        return self._closed

    def create_consumer(self, **params) -> Consumer:
        """
        Create a consumer on the requested destination.

        :param params: queue_name | topic_name | destination, plus optional
            selector and no_local. Other keys are ignored.
        :raises ConfigurationError: For ambiguous or missing addressing.
        """
        config = parse_config(ConsumerConfig, params)
        destination = resolve_destination(config)
        provider_destination = destination.resolve_for_consumer(self._handle)
        handle = self._handle.create_consumer(
            provider_destination, selector=config.selector, no_local=config.no_local
        )
        self._logger.debug("Consumer created for %s", destination)
        return Consumer(
            self,
            handle,
            destination,
            self._sink,
            selector=config.selector,
            no_local=config.no_local,
            logger=self._logger,
        )

    def create_producer(self, **params) -> Producer:
        """
        Create a producer on the requested destination.

        :param params: queue_name | topic_name | destination. Other keys are ignored.
        :raises ConfigurationError: For ambiguous or missing addressing.
        """
        config = parse_config(DestinationConfig, params)
        destination = resolve_destination(config)
        provider_destination = destination.resolve_for_producer(self._handle)
        handle = self._handle.create_producer(provider_destination)
        self._logger.debug("Producer created for %s", destination)
        return Producer(handle, destination, logger=self._logger)

    def consumer(self, body: Callable[[Consumer], T], **params) -> T:
        """Create a consumer, call ``body`` with it and always close it afterwards."""
        with self.create_consumer(**params) as consumer:
            return body(consumer)

    def producer(self, body: Callable[[Producer], T], **params) -> T:
        """Create a producer, call ``body`` with it and always close it afterwards."""
        with self.create_producer(**params) as producer:
            return body(producer)

    def message(self, data: Any, **properties) -> Message:
        return create_message(data, **properties)

    def commit(self) -> None:
        self._end_transaction("commit", self._handle.commit)

    def rollback(self) -> None:
        self._end_transaction("rollback", self._handle.rollback)

    def _end_transaction(self, name: str, action: Callable[[], None]) -> None:
        if not self.transacted:
            raise TransactionError(f"Cannot {name} a session that is not transacted")
        try:
            action()
        except TransactionError:
            raise
        except Exception as e:
            raise TransactionError(f"Session {name} failed: {e}") from e
        self._logger.debug("Session %s complete", name)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._handle.close()
        self._logger.debug("Session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
