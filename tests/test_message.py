"""
Tests for message construction and map value conversion.
"""

import unittest

from pyjms import Message, MessageType, create_message
from pyjms.message import LONG_MAX, LONG_MIN, MapValueType, to_map_value


class TestMapValues(unittest.TestCase):
    def test_bool_is_not_a_long(self):
        self.assertEqual(to_map_value(True), (MapValueType.BOOLEAN, True))

    def test_integers_are_longs(self):
        self.assertEqual(to_map_value(LONG_MAX), (MapValueType.LONG, LONG_MAX))
        self.assertEqual(to_map_value(LONG_MIN), (MapValueType.LONG, LONG_MIN))

    def test_integer_out_of_range(self):
        with self.assertRaises(ValueError):
            to_map_value(LONG_MAX + 1)
        with self.assertRaises(ValueError):
            Message.create_map({"big": 2**64})

    def test_other_primitives(self):
        self.assertEqual(to_map_value(1.5), (MapValueType.DOUBLE, 1.5))
        self.assertEqual(to_map_value(None), (MapValueType.NULL, None))
        self.assertEqual(to_map_value("x"), (MapValueType.STRING, "x"))

    def test_anything_else_becomes_a_string(self):
        self.assertEqual(to_map_value(["a"]), (MapValueType.STRING, "['a']"))

    def test_typed_map(self):
        message = Message.create_map({"count": 3, "ok": False})

        self.assertEqual(
            message.typed_map(),
            {"count": (MapValueType.LONG, 3), "ok": (MapValueType.BOOLEAN, False)},
        )


class TestCreateMessage(unittest.TestCase):
    def test_type_follows_python_type(self):
        cases = {
            "text": MessageType.TEXT,
            b"raw": MessageType.BYTES,
            (1, 2): MessageType.STREAM,
            3.5: MessageType.OBJECT,
        }
        for data, expected in cases.items():
            self.assertIs(create_message(data).type, expected, data)
        self.assertIs(create_message({"a": 1}).type, MessageType.MAP)

    def test_message_returned_unchanged(self):
        message = Message.create_text("hi")

        self.assertIs(create_message(message), message)

    def test_extra_properties_copy_the_message(self):
        message = Message.create_text("hi", tenant="acme")

        first = create_message(message, attempt=1)
        second = create_message(message, retry=True)

        self.assertIsNot(first, message)
        self.assertEqual(message.properties, {"tenant": "acme"})
        self.assertEqual(first.properties, {"tenant": "acme", "attempt": 1})
        self.assertEqual(second.properties, {"tenant": "acme", "retry": True})
        self.assertEqual(second.text, "hi")

    def test_properties_attached(self):
        message = create_message("hi", tenant="acme", attempt=2)

        self.assertEqual(message.properties, {"tenant": "acme", "attempt": 2})

    def test_map_data_is_a_copy(self):
        message = Message.create_map({"a": 1})

        message.data["a"] = 2

        self.assertEqual(message.data, {"a": 1})

    def test_text_only_on_text_messages(self):
        with self.assertRaises(TypeError):
            Message.create_bytes(b"x").text
        with self.assertRaises(TypeError):
            Message.create_text("x").typed_map()

    def test_acknowledge_without_acknowledger_is_noop(self):
        Message.create_text("x").acknowledge()

    def test_acknowledge_calls_acknowledger(self):
        calls = []
        message = Message.create_text("x")
        message._acknowledger = lambda: calls.append(True)

        message.acknowledge()

        self.assertEqual(calls, [True])
