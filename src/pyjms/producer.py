import logging
from typing import Any

from pyjms.config import SendOptions, parse_config
from pyjms.destination import Destination
from pyjms.message import Message, create_message
from pyjms.provider.base import ProducerHandle

logger = logging.getLogger(__name__)


class Producer:
    """Sends messages to one destination through one session."""

    def __init__(
        self,
        handle: ProducerHandle,
        destination: Destination,
        logger: logging.Logger = logger,
    ) -> None:
        self._handle = handle
        self._destination = destination
        self._logger = logger
        self._closed = False

    @property
    def destination(self) -> Destination:
        return self._destination

    @property
    def is_closed(self) -> bool:
        return self._closed

    def send(self, message: Any, **options) -> Message:
        """
        Send a message to the bound destination.

        :param message: A Message, or plain data turned into one.
        :param options: delivery_mode, priority and time_to_live (seconds),
            passed to the provider unchanged.
        :return: The message that was sent.
        :raises ConfigurationError: For unknown or invalid options.
        """
        send_options = parse_config(SendOptions, options)
        message = create_message(message)
        self._handle.send(
            message,
            delivery_mode=send_options.delivery_mode,
            priority=send_options.priority,
            time_to_live=send_options.time_to_live,
        )
        self._logger.debug("Message sent to %s", self._destination)
        return message

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._handle.close()
        self._logger.debug("Producer for %s closed", self._destination)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
