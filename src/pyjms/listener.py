"""
Asynchronous listener support.

Handlers installed with ``on_message`` run on provider threads. Nothing they
raise is allowed to escape into those threads: failures are reported to the
owning connection's ExceptionSink, which hands them to the registered
exception listener (or logs them when there is none).

On a transacted session the handler decides the outcome of the unit of work
by returning a ListenerResult (True and False are accepted as aliases).
Exactly one of commit or rollback is issued per delivered message.
"""

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from pyjms.exceptions import DeliveryError, JMSError
from pyjms.message import Message
from pyjms.provider.base import ExceptionListener, MessageListener
from pyjms.statistics import StatisticsCollector

if TYPE_CHECKING:
    from pyjms.session import Session

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Message], Any]


class ListenerResult(Enum):
    COMMIT = "commit"
    ROLLBACK = "rollback"

    @classmethod
    def from_return(cls, value: Any) -> Optional["ListenerResult"]:
        """Map a handler return value, None if it is not a recognised result."""
        if isinstance(value, ListenerResult):
            return value
        if value is True:
            return cls.COMMIT
        if value is False:
            return cls.ROLLBACK
        return None


class ExceptionSink:
    """
    Single destination for failures raised away from the caller's thread.

    Owned by a Connection. Provider connection failures and every listener
    failure end up here.
    """

    def __init__(self, logger: logging.Logger = logger):
        self._logger = logger
        self._lock = threading.Lock()
        self._listener: Optional[ExceptionListener] = None

    @property
    def listener(self) -> Optional[ExceptionListener]:
        with self._lock:
            return self._listener

    @listener.setter
    def listener(self, listener: Optional[ExceptionListener]) -> None:
        with self._lock:
            self._listener = listener

    def report(self, error: BaseException) -> None:
        listener = self.listener
        if listener is None:
            self._logger.error(
                "Asynchronous failure with no exception listener registered: %s",
                error,
                exc_info=error,
            )
            return

        try:
            listener(error)
        except Exception as e:
            self._logger.exception(
                "Exception listener failed while handling %r: %s", error, e
            )


def build_message_listener(
    handler: MessageHandler,
    session: "Session",
    sink: ExceptionSink,
    statistics: Optional[StatisticsCollector] = None,
    logger: logging.Logger = logger,
) -> MessageListener:
    """
    Wrap a user handler into the listener handed to the provider.

    :param handler: Called once per delivered message.
    :param session: Session owning the consumer; decides transaction handling.
    :param sink: Where failures are reported.
    :param statistics: Optional collector counting every delivery.
    :param logger: Logger for delivery diagnostics.
    :return: Listener returning True when the message was handled.
    """
    if session.transacted:

        def deliver(message: Message) -> bool:
            if statistics is not None:
                statistics.record()
            _deliver_transacted(handler, message, session, sink, logger)
            return True

    else:

        def deliver(message: Message) -> bool:
            if statistics is not None:
                statistics.record()
            try:
                handler(message)
            except Exception as e:
                logger.debug("Message listener raised for %s", message.message_id)
                sink.report(DeliveryError(delivered=message, cause=e))
                return False
            return True

    return deliver


def _deliver_transacted(
    handler: MessageHandler,
    message: Message,
    session: "Session",
    sink: ExceptionSink,
    logger: logging.Logger,
) -> None:
    try:
        result = handler(message)
    except Exception as e:
        logger.debug("Message listener raised, rolling back %s", message.message_id)
        _end_unit_of_work(session.rollback, sink)
        sink.report(DeliveryError(delivered=message, cause=e))
        return

    outcome = ListenerResult.from_return(result)
    if outcome is None:
        _end_unit_of_work(session.rollback, sink)
        sink.report(
            DeliveryError(
                f"Message listener returned {result!r}, expected a ListenerResult; "
                "the session was rolled back",
                delivered=message,
            )
        )
        return

    if outcome is ListenerResult.COMMIT:
        _end_unit_of_work(session.commit, sink)
    else:
        logger.debug("Message listener requested rollback of %s", message.message_id)
        _end_unit_of_work(session.rollback, sink)


def _end_unit_of_work(action: Callable[[], None], sink: ExceptionSink) -> None:
    try:
        action()
    except JMSError as e:
        sink.report(e)
