"""
Tests for the in-process broker behind the mock provider.
"""

import time
import unittest

from pyjms import ConfigurationError, Message
from pyjms.config import DestinationKind
from pyjms.mock import MockBroker, MockDestination, parse_selector


class TestSelectors(unittest.TestCase):
    def test_empty_selector_matches_everything(self):
        self.assertIsNone(parse_selector(None))
        self.assertIsNone(parse_selector(""))

    def test_clauses_joined_by_and(self):
        matches = parse_selector("color = 'red' AND size = 3 and urgent = TRUE")

        self.assertTrue(matches(Message.create_text("x", color="red", size=3, urgent=True)))
        self.assertFalse(matches(Message.create_text("x", color="red", size=4, urgent=True)))
        self.assertFalse(matches(Message.create_text("x", color="red")))

    def test_float_values(self):
        matches = parse_selector("ratio = 0.5")

        self.assertTrue(matches(Message.create_text("x", ratio=0.5)))

    def test_unsupported_syntax(self):
        for selector in ("color <> 'red'", "color = red", "a = 1 OR b = 2"):
            with self.assertRaises(ConfigurationError, msg=selector):
                parse_selector(selector)


class TestMockBroker(unittest.TestCase):
    def setUp(self):
        self.broker = MockBroker()
        self.queue = MockDestination(DestinationKind.QUEUE, "q")

    def test_publish_stores_a_copy(self):
        message = Message.create_text("x", attempt=1)

        stored = self.broker.publish(self.queue, message)
        message.properties["attempt"] = 2

        self.assertIsNot(stored, message)
        self.assertEqual(self.broker.pending("q")[0].properties, {"attempt": 1})
        self.assertIsNotNone(stored.message_id)
        self.assertIsNotNone(stored.timestamp)

    def test_requeue_puts_message_first(self):
        self.broker.publish(self.queue, Message.create_text("first"))
        self.broker.publish(self.queue, Message.create_text("second"))
        store = self.broker.queue("q")
        envelope = store.get()

        self.broker.requeue(store, envelope)

        pending = self.broker.pending("q")
        self.assertEqual([m.text for m in pending], ["first", "second"])
        self.assertTrue(pending[0].redelivered)

    def test_expired_messages_are_dropped(self):
        self.broker.publish(self.queue, Message.create_text("stale"), time_to_live=0.01)
        time.sleep(0.05)

        self.assertIsNone(self.broker.queue("q").get(timeout=0))

    def test_topic_without_subscribers_drops_messages(self):
        topic = MockDestination(DestinationKind.TOPIC, "t")
        self.broker.declare_topic("t")

        self.broker.publish(topic, Message.create_text("nobody"))
        subscription = self.broker.subscribe("t", "conn-1")

        self.assertEqual(len(subscription.store), 0)

    def test_release_connection_removes_temporaries(self):
        temporary = self.broker.create_temporary(DestinationKind.TOPIC, "conn-1")
        subscription = self.broker.subscribe(temporary.name, "conn-2")
        self.broker.subscribe("t", "conn-1")

        self.broker.release_connection("conn-1")

        self.assertFalse(self.broker.has_destination(temporary))
        self.broker.publish(MockDestination(DestinationKind.TOPIC, "t"), Message.create_text("x"))
        self.assertEqual(len(subscription.store), 0)

    def test_get_waits_for_publish(self):
        store = self.broker.queue("q")

        start = time.monotonic()
        self.assertIsNone(store.get(timeout=0.05))
        self.assertGreaterEqual(time.monotonic() - start, 0.04)
