"""
Shared pytest fixtures.

Behavioural tests run against the in-memory provider from ``pyjms.mock``:
a ``MockBroker`` shared by every connection of a test, and a
``MockConnectionFactory`` that records the handles the core asked for.

### Available Fixtures

- `broker`: fresh MockBroker that redelivers rolled back messages
- `quiet_broker`: MockBroker that drops rolled back messages instead, so
  rollbacks can be counted deterministically
- `factory`: MockConnectionFactory bound to `broker`
- `connection`: started Connection on `factory`, closed after the test
- `wait_for`: poll a condition that another thread makes true
- `send_messages`: put payloads on a queue through a short-lived session

### Usage Examples

```python
def test_round_trip(connection):
    def exchange(session):
        session.producer(lambda p: p.send("hello"), queue_name="q")
        return session.consumer(lambda c: c.receive(1).text, queue_name="q")

    assert connection.session(exchange) == "hello"
```
"""

import time
from typing import Callable

import pytest

from pyjms import Connection
from pyjms.mock import MockBroker, MockConnectionFactory


def send_all(connection: Connection, queue_name: str, payloads) -> None:
    """Put every payload on ``queue_name`` through a short-lived session."""

    def send(producer):
        for payload in payloads:
            producer.send(payload)

    connection.session(lambda session: session.producer(send, queue_name=queue_name))


def wait_until(condition: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


@pytest.fixture
def broker():
    return MockBroker()


@pytest.fixture
def quiet_broker():
    return MockBroker(redeliver=False)


@pytest.fixture
def factory(broker):
    return MockConnectionFactory(broker)


@pytest.fixture
def connection(factory):
    conn = Connection(factory=factory)
    conn.start()
    yield conn
    conn.close()


@pytest.fixture
def wait_for():
    return wait_until


@pytest.fixture
def send_messages():
    return send_all
