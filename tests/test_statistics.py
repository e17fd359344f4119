"""
Tests for message statistics, both the collector on its own and the
statistics-enabled consumer iteration.
"""

import unittest

from pyjms.statistics import StatisticsCollector, StatisticsSnapshot


class FakeClock:
    def __init__(self, *readings):
        self.readings = list(readings)

    def __call__(self):
        return self.readings.pop(0)


class TestStatisticsCollector(unittest.TestCase):
    def test_unstarted_snapshot_is_empty(self):
        collector = StatisticsCollector()

        self.assertFalse(collector.is_started)
        self.assertEqual(collector.snapshot(), StatisticsSnapshot(0, None, None, None))

    def test_records_before_begin_are_ignored(self):
        collector = StatisticsCollector()
        collector.record()

        collector.begin()

        self.assertEqual(collector.snapshot().message_count, 0)

    def test_rate_over_frozen_duration(self):
        collector = StatisticsCollector(clock=FakeClock(10.0, 12.0))
        collector.begin()
        for _ in range(4):
            collector.record()
        collector.finish()

        snapshot = collector.snapshot()

        self.assertEqual(snapshot.message_count, 4)
        self.assertEqual(snapshot.duration, 2.0)
        self.assertEqual(snapshot.messages_per_second, 2.0)
        self.assertIsNotNone(snapshot.start_time)

    def test_zero_duration_has_no_rate(self):
        collector = StatisticsCollector(clock=FakeClock(5.0, 5.0))
        collector.begin()
        collector.record()
        collector.finish()

        snapshot = collector.snapshot()

        self.assertEqual(snapshot.duration, 0.0)
        self.assertIsNone(snapshot.messages_per_second)

    def test_clock_going_backwards_clamps_to_zero(self):
        collector = StatisticsCollector(clock=FakeClock(5.0, 4.0))
        collector.begin()
        collector.finish()

        self.assertEqual(collector.snapshot().duration, 0.0)

    def test_elapsed_never_decreases_while_running(self):
        collector = StatisticsCollector()
        collector.begin()

        first = collector.snapshot().duration
        second = collector.snapshot().duration

        self.assertGreaterEqual(second, first)
        self.assertGreaterEqual(first, 0.0)

    def test_begin_resets(self):
        collector = StatisticsCollector()
        collector.begin()
        collector.record()
        collector.record()

        collector.begin()

        self.assertEqual(collector.snapshot().message_count, 0)


def test_each_counts_five_queued_messages(connection, send_messages):
    send_messages(connection, "stats", [f"message {i}" for i in range(5)])

    snapshot = connection.session(
        lambda session: session.consumer(
            lambda consumer: consumer.each(lambda message: None, statistics=True),
            queue_name="stats",
        )
    )

    assert snapshot.message_count == 5
    assert snapshot.duration >= 0
    assert snapshot.start_time is not None


def test_each_without_statistics_leaves_counts_alone(connection, send_messages):
    send_messages(connection, "stats", ["a", "b"])

    def consume(consumer):
        first = consumer.each(lambda message: None, statistics=True)
        send_messages(connection, "stats", ["c"])
        second = consumer.each(lambda message: None)
        return first, second, consumer.statistics()

    first, second, after = connection.session(
        lambda session: session.consumer(consume, queue_name="stats")
    )

    assert first.message_count == 2
    assert second is None
    assert after.message_count == 2
    assert after.start_time == first.start_time


def test_listener_statistics(connection, send_messages, wait_for):
    connection.on_message(lambda message: None, queue_name="stats", statistics=True)
    send_messages(connection, "stats", ["a", "b", "c"])

    assert wait_for(lambda: connection.on_message_statistics()[0].message_count == 3)
