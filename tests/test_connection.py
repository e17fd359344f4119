"""
Tests for Connection lifecycle: scoped helpers, start/stop, close cascade
of the sessions and consumers created by on_message.
"""

import logging
import time
import unittest
from unittest.mock import patch

import pytest

from pyjms import ConfigurationError, Connection, JMSError, Session
from pyjms.mock import MockBroker, MockConnectionFactory


class TestConnectionLifecycle(unittest.TestCase):
    def setUp(self):
        self.factory = MockConnectionFactory(MockBroker())
        self.connection = Connection(factory=self.factory)
        self.handle = self.factory.connections[0]

    def tearDown(self):
        self.connection.close()

    def test_not_started_until_start(self):
        self.assertFalse(self.connection.started)
        self.assertFalse(self.handle.is_started)

        self.connection.start()

        self.assertTrue(self.connection.started)
        self.assertTrue(self.handle.is_started)

    def test_start_and_stop_are_idempotent(self):
        self.connection.start()
        self.connection.start()
        self.assertEqual(self.handle.start_count, 1)

        self.connection.stop()
        self.connection.stop()
        self.assertEqual(self.handle.stop_count, 1)
        self.assertFalse(self.connection.started)

    def test_close_is_idempotent(self):
        self.connection.close()
        self.connection.close()

        self.assertTrue(self.connection.closed)
        self.assertEqual(self.handle.close_count, 1)

    def test_closed_connection_rejects_use(self):
        self.connection.close()

        with self.assertRaises(JMSError):
            self.connection.start()
        with self.assertRaises(JMSError):
            self.connection.create_session()
        with self.assertRaises(JMSError):
            self.connection.on_message(lambda message: None, queue_name="q")

    def test_create_session_passes_modes(self):
        session = self.connection.create_session(transacted=True)

        self.assertTrue(session.transacted)
        self.assertTrue(self.handle.sessions[0].transacted)
        session.close()
        self.assertEqual(self.handle.sessions[0].close_count, 1)

    def test_scoped_session_closed_after_body(self):
        result = self.connection.session(lambda session: session.ack_mode.value, ack_mode="client")

        self.assertEqual(result, "client")
        self.assertEqual(self.handle.sessions[0].close_count, 1)

    def test_scoped_session_closed_when_body_raises(self):
        def body(session):
            raise RuntimeError("body failed")

        with self.assertRaises(RuntimeError):
            self.connection.session(body)

        self.assertEqual(self.handle.sessions[0].close_count, 1)

    def test_client_id_and_meta_data(self):
        self.connection.client_id = "billing-1"

        self.assertEqual(self.connection.client_id, "billing-1")
        meta = self.connection.meta_data()
        self.assertEqual(meta.provider_name, "pyjms mock")
        self.assertEqual(
            str(self.connection), "Connection provider: pyjms mock v1.0, spec v1.1"
        )

    def test_str_after_close(self):
        self.connection.close()

        self.assertEqual(str(self.connection), "Connection (closed)")

    def test_provider_failure_reaches_exception_listener(self):
        errors = []
        self.connection.on_exception(errors.append)
        failure = RuntimeError("heartbeat missed")

        self.handle.raise_exception(failure)

        self.assertEqual(errors, [failure])
        self.assertEqual(self.connection.exception_listener, errors.append)

    def test_provider_failure_logged_without_listener(self):
        with self.assertLogs("pyjms.connection", level="ERROR") as logs:
            self.handle.raise_exception(RuntimeError("heartbeat missed"))

        self.assertIn("heartbeat missed", logs.output[0])


class TestOnMessageCascade(unittest.TestCase):
    def setUp(self):
        self.factory = MockConnectionFactory(MockBroker())
        self.connection = Connection(factory=self.factory)
        self.handle = self.factory.connections[0]

    def tearDown(self):
        self.connection.close()

    def test_three_sessions_closed_exactly_once(self):
        self.connection.on_message(lambda message: None, queue_name="work", session_count=3)

        self.assertEqual(len(self.handle.sessions), 3)
        consumers = [c for session in self.handle.sessions for c in session.consumers]
        self.assertEqual(len(consumers), 3)

        self.connection.close()
        self.connection.close()

        for session in self.handle.sessions:
            self.assertEqual(session.close_count, 1)
        for consumer in consumers:
            self.assertEqual(consumer.close_count, 1)
        self.assertEqual(self.handle.close_count, 1)

    def test_close_during_registration_closes_the_new_pair(self):
        create_consumer = Session.create_consumer

        def close_then_create(session, **params):
            self.connection.close()
            return create_consumer(session, **params)

        with patch.object(Session, "create_consumer", close_then_create):
            with self.assertRaises(JMSError):
                self.connection.on_message(
                    lambda message: None, queue_name="work", session_count=2
                )

        self.assertEqual(len(self.handle.sessions), 1)
        session = self.handle.sessions[0]
        self.assertEqual(session.close_count, 1)
        self.assertEqual(len(session.consumers), 1)
        self.assertEqual(session.consumers[0].close_count, 1)
        self.assertEqual(self.connection.on_message_statistics(), [])

    def test_invalid_addressing_creates_no_session(self):
        with self.assertRaises(ConfigurationError):
            self.connection.on_message(
                lambda message: None, queue_name="a", topic_name="b", session_count=2
            )

        self.assertEqual(self.handle.sessions, [])

    def test_invalid_session_count_creates_no_session(self):
        with self.assertRaises(ConfigurationError):
            self.connection.on_message(lambda message: None, queue_name="a", session_count=0)

        self.assertEqual(self.handle.sessions, [])

    def test_consumer_failure_closes_its_session(self):
        with self.assertRaises(ConfigurationError):
            self.connection.on_message(
                lambda message: None, queue_name="a", selector="color LIKE 'r%'"
            )

        self.assertEqual(len(self.handle.sessions), 1)
        self.assertEqual(self.handle.sessions[0].close_count, 1)

    def test_statistics_per_listener(self):
        self.connection.on_message(
            lambda message: None, queue_name="work", session_count=2, statistics=True
        )

        snapshots = self.connection.on_message_statistics()

        self.assertEqual(len(snapshots), 2)
        for snapshot in snapshots:
            self.assertEqual(snapshot.message_count, 0)
            self.assertIsNotNone(snapshot.start_time)


class TestScopedConnection(unittest.TestCase):
    def test_start_session_returns_body_result_and_closes(self):
        factory = MockConnectionFactory()

        result = Connection.start_session(
            lambda session: isinstance(session, Session), factory=factory
        )

        self.assertTrue(result)
        handle = factory.connections[0]
        self.assertEqual(handle.start_count, 1)
        self.assertEqual(handle.close_count, 1)
        self.assertEqual(handle.sessions[0].close_count, 1)

    def test_start_connection_closes_when_body_raises(self):
        factory = MockConnectionFactory()

        def body(connection):
            raise RuntimeError("fail")

        with self.assertRaises(RuntimeError):
            Connection.start_connection(body, factory=factory)

        self.assertTrue(factory.connections[0].is_closed)

    def test_start_session_shares_parameters(self):
        factory = MockConnectionFactory()

        transacted = Connection.start_session(
            lambda session: session.transacted,
            factory=factory,
            transacted=True,
            client_name="orders",
        )

        self.assertTrue(transacted)
        self.assertEqual(factory.client_name, "orders")

    def test_listener_install_failure_closes_provider_connection(self):
        factory = MockConnectionFactory()
        failure = RuntimeError("listener rejected")

        with patch(
            "pyjms.mock.provider.MockConnectionHandle.set_exception_listener",
            side_effect=failure,
        ):
            with self.assertRaises(RuntimeError):
                Connection(factory=factory)

        self.assertEqual(factory.connections[0].close_count, 1)


def test_stop_pauses_listener_delivery(connection, send_messages, wait_for):
    received = []
    connection.stop()
    connection.on_message(lambda message: received.append(message.text), queue_name="paused")
    send_messages(connection, "paused", ["held"])

    time.sleep(0.2)
    assert received == []

    connection.start()
    assert wait_for(lambda: received == ["held"])


def test_injected_logger_is_used(factory, caplog):
    custom = logging.getLogger("orders.messaging")
    with caplog.at_level(logging.INFO, logger="orders.messaging"):
        conn = Connection(factory=factory, logger=custom)
        conn.close()

    names = {record.name for record in caplog.records}
    assert "orders.messaging" in names


def test_context_manager_closes(factory):
    with Connection(factory=factory) as conn:
        assert not conn.closed

    assert conn.closed
    assert factory.connections[0].close_count == 1


@pytest.mark.parametrize("session_count", [1, 3])
def test_listeners_share_queue(connection, send_messages, wait_for, session_count):
    received = []
    connection.on_message(
        lambda message: received.append(message.text),
        queue_name="shared",
        session_count=session_count,
    )
    send_messages(connection, "shared", [str(i) for i in range(10)])

    assert wait_for(lambda: len(received) == 10)
    assert sorted(received, key=int) == [str(i) for i in range(10)]
