"""
Message consumer.

A consumer reads from one destination through one session, either
synchronously (receive, messages, each) or by installing an asynchronous
listener. Like its session, a consumer belongs to a single thread.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

from pyjms.config import EachOptions, parse_config
from pyjms.destination import Destination
from pyjms.exceptions import DeliveryError
from pyjms.listener import ExceptionSink, MessageHandler, build_message_listener
from pyjms.message import Message
from pyjms.provider.base import ConsumerHandle
from pyjms.statistics import StatisticsCollector, StatisticsSnapshot

if TYPE_CHECKING:
    from pyjms.session import Session

logger = logging.getLogger(__name__)


class Consumer:
    def __init__(
        self,
        session: "Session",
        handle: ConsumerHandle,
        destination: Destination,
        sink: ExceptionSink,
        selector: Optional[str] = None,
        no_local: bool = False,
        logger: logging.Logger = logger,
    ) -> None:
        self._session = session
        self._handle = handle
        self._destination = destination
        self._sink = sink
        self._selector = selector
        self._no_local = no_local
        self._logger = logger
        self._statistics = StatisticsCollector()
        self._closed = False

    @property
    def destination(self) -> Destination:
        return self._destination

    @property
    def selector(self) -> Optional[str]:
        return self._selector

    @property
    def no_local(self) -> bool:
        return self._no_local

    @property
    def is_closed(self) -> bool:
        return self._closed

    def receive(self, timeout: Optional[float] = None) -> Optional[Message]:
        """
        Wait for the next message.

        :param timeout: Seconds to wait; None blocks until a message arrives.
        :return: The message, or None if the timeout expired.
        """
        return self._handle.receive(timeout)

    def receive_no_wait(self) -> Optional[Message]:
        return self._handle.receive_no_wait()

    def messages(self, timeout: Optional[float] = 0) -> Iterator[Message]:
        """
        Lazily yield messages until none arrives within ``timeout``.

        :param timeout: 0 drains what is already pending, None blocks for
            every message, anything else waits that many seconds per message.
        """
        while True:
            if timeout == 0:
                message = self.receive_no_wait()
            else:
                message = self.receive(timeout)
            if message is None:
                return
            yield message

    def each(
        self, visitor: Callable[[Message], Any], **options
    ) -> Optional[StatisticsSnapshot]:
        """
        Call ``visitor`` for every message until the destination is drained.

        The visitor stops the iteration early by returning False.

        :param visitor: Called once per message.
        :param options: statistics (bool), timeout (see ``messages``).
        :return: Statistics snapshot when statistics were requested, else None.
        :raises DeliveryError: If the visitor raises.
        """
        each_options = parse_config(EachOptions, options)
        if each_options.statistics:
            self._statistics.begin()

        try:
            for message in self.messages(each_options.timeout):
                if each_options.statistics:
                    self._statistics.record()
                try:
                    keep_going = visitor(message)
                except Exception as e:
                    raise DeliveryError(delivered=message, cause=e) from e
                if keep_going is False:
                    break
        finally:
            if each_options.statistics:
                self._statistics.finish()

        if each_options.statistics:
            return self._statistics.snapshot()
        return None

    def on_message(self, handler: MessageHandler, statistics: bool = False) -> None:
        """
        Install ``handler`` as the asynchronous listener for this consumer.

        Returns immediately; messages are delivered on provider threads once
        the connection is started. On a transacted session the handler's
        return value commits or rolls back each message.

        :param handler: Called once per arriving message.
        :param statistics: Start counting deliveries from now.
        """
        collector = None
        if statistics:
            self._statistics.begin()
            collector = self._statistics

        listener = build_message_listener(
            handler,
            self._session,
            self._sink,
            statistics=collector,
            logger=self._logger,
        )
        self._handle.set_message_listener(listener)
        self._logger.info("Message listener installed on %s", self._destination)

    def statistics(self) -> StatisticsSnapshot:
        return self._statistics.snapshot()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._handle.close()
        self._logger.debug("Consumer for %s closed", self._destination)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
