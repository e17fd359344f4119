"""
Provider interfaces.

A provider adapts one broker client library to the handles the pyjms core
drives. The core never talks to a broker directly: it resolves a
ConnectionFactory, applies declared properties to it, asks it for a
ConnectionHandle and works through the session, consumer and producer
handles from there on.
"""

import abc
from typing import Any, Callable, ClassVar, NamedTuple, Optional

from pyjms.config import AckMode, DeliveryMode
from pyjms.message import Message

# Returns True when the message was handled
MessageListener = Callable[[Message], bool]
ExceptionListener = Callable[[BaseException], None]


class ProviderMetaData(NamedTuple):
    provider_name: str
    provider_version: str
    spec_version: str


class ConsumerHandle(abc.ABC):
    @abc.abstractmethod
    def receive(self, timeout: Optional[float] = None) -> Optional[Message]:
        """
        Block until a message arrives.

        :param timeout: Seconds to wait, None waits indefinitely.
        :return: The message, or None when the timeout expired.
        """
        pass

    @abc.abstractmethod
    def receive_no_wait(self) -> Optional[Message]:
        pass

    @abc.abstractmethod
    def set_message_listener(self, listener: MessageListener) -> None:
        """
        Deliver every arriving message to ``listener`` on a provider thread.

        Delivery only happens while the owning connection is started. A
        listener returning False asks the provider to redeliver the message
        (auto acknowledge sessions only).
        """
        pass

    @abc.abstractmethod
    def close(self) -> None:
        pass


class ProducerHandle(abc.ABC):
    @abc.abstractmethod
    def send(
        self,
        message: Message,
        delivery_mode: Optional[DeliveryMode] = None,
        priority: Optional[int] = None,
        time_to_live: Optional[float] = None,
    ) -> None:
        pass

    @abc.abstractmethod
    def close(self) -> None:
        pass


class SessionHandle(abc.ABC):
    @property
    @abc.abstractmethod
    def transacted(self) -> bool:
        pass

    @abc.abstractmethod
    def create_queue(self, name: str) -> Any:
        pass

    @abc.abstractmethod
    def create_topic(self, name: str) -> Any:
        pass

    @abc.abstractmethod
    def create_temporary_queue(self) -> Any:
        pass

    @abc.abstractmethod
    def create_temporary_topic(self) -> Any:
        pass

    @abc.abstractmethod
    def create_consumer(
        self, destination: Any, selector: Optional[str] = None, no_local: bool = False
    ) -> ConsumerHandle:
        pass

    @abc.abstractmethod
    def create_producer(self, destination: Any) -> ProducerHandle:
        pass

    @abc.abstractmethod
    def commit(self) -> None:
        pass

    @abc.abstractmethod
    def rollback(self) -> None:
        pass

    @abc.abstractmethod
    def close(self) -> None:
        pass


class ConnectionHandle(abc.ABC):
    @abc.abstractmethod
    def start(self) -> None:
        pass

    @abc.abstractmethod
    def stop(self) -> None:
        pass

    @abc.abstractmethod
    def create_session(self, transacted: bool, ack_mode: AckMode) -> SessionHandle:
        pass

    @abc.abstractmethod
    def set_exception_listener(self, listener: Optional[ExceptionListener]) -> None:
        """Register the callback for failures outside any single message."""
        pass

    @property
    @abc.abstractmethod
    def client_id(self) -> Optional[str]:
        pass

    @client_id.setter
    @abc.abstractmethod
    def client_id(self, value: str) -> None:
        pass

    @abc.abstractmethod
    def meta_data(self) -> ProviderMetaData:
        pass

    @abc.abstractmethod
    def close(self) -> None:
        pass


class ConnectionFactory(abc.ABC):
    """
    Builds provider connections.

    Subclasses declare the options they accept in ``PROPERTIES``, mapping the
    configuration key to the attribute it sets. Only declared options are
    ever applied; everything else in the connection configuration is left
    alone.
    """

    PROPERTIES: ClassVar[dict[str, str]] = {}

    def apply_property(self, name: str, value: Any) -> bool:
        """
        Apply one configuration option if this factory declares it.

        :return: True if the option was applied.
        """
        attribute = self.PROPERTIES.get(name)
        if attribute is None:
            return False
        setattr(self, attribute, value)
        return True

    @abc.abstractmethod
    def create_connection(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> ConnectionHandle:
        pass
