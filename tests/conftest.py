"""
conftest.py — Shared pytest configuration and fixtures

This file is automatically loaded by pytest.
"""

import asyncio
import copy
import sys
from pathlib import Path
from typing import Dict, List

import pytest

# Ensure the project root is in the path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from hubrelay.clients import BrokerClient
from hubrelay.config import ConfigLoader
from hubrelay.relay import ConnectionRegistry


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# ============================================================================
# Fake broker client
# ============================================================================

class FakeBrokerClient(BrokerClient):
    """In-memory client: records calls, lets tests fire notifications."""

    def __init__(self, url, listener):
        super().__init__(url, listener)
        self.opened = False
        self.closed = False
        self.subscriptions: List[tuple] = []
        self.published: List[tuple] = []
        self.publish_error: Exception = None

    def open(self):
        self.opened = True

    def subscribe(self, node, pattern, subscription_id):
        self.subscriptions.append((node, pattern, subscription_id))

    def publish(self, node, message):
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((node, message))

    def close(self):
        self.closed = True

    # -- simulation helpers --

    def fire_open(self):
        self.listener.client_opened(self)

    def fire_close(self):
        self.listener.client_closed(self)

    def fire_error(self, exc=None):
        self.listener.client_errored(self, exc or ConnectionResetError("connection reset"))

    def deliver(self, message, subscription):
        self.listener.message_received(self, message, subscription)


class FakeClientFactory:
    """Client factory handed to Connections; remembers every client created."""

    def __init__(self):
        self.clients: List[FakeBrokerClient] = []

    def __call__(self, url, listener):
        client = FakeBrokerClient(url, listener)
        self.clients.append(client)
        return client

    def clients_for(self, url) -> List[FakeBrokerClient]:
        return [c for c in self.clients if c.url == url]

    def latest(self, url) -> FakeBrokerClient:
        return self.clients_for(url)[-1]


def open_connection(connection, factory: FakeClientFactory) -> FakeBrokerClient:
    """Start a connection and complete its connect attempt. Needs a running loop."""
    connection.start()
    client = factory.latest(connection.url)
    client.fire_open()
    return client


class RecordingListener:
    """Records client notifications, for testing real transports."""

    def __init__(self):
        self.events = []

    def client_opened(self, client):
        self.events.append(("open",))

    def client_closed(self, client):
        self.events.append(("close",))

    def client_errored(self, client, exc):
        self.events.append(("error", exc))

    def message_received(self, client, message, subscription):
        self.events.append(("message", message, subscription))

    def kinds(self):
        return [e[0] for e in self.events]

    async def wait_for(self, kind, count=1, timeout=2.0):
        async def _poll():
            while self.kinds().count(kind) < count:
                await asyncio.sleep(0.01)
        await asyncio.wait_for(_poll(), timeout=timeout)


# ============================================================================
# Fixtures available to all tests
# ============================================================================

LEFT_URL = "tcp://left.example:13902"
RIGHT_URL = "tcp://right.example:13902"

TWO_SERVERS: Dict = {
    "relay": {"reconnect_delay": 0.05},
    "connections": {"left": LEFT_URL, "right": RIGHT_URL},
    "bindings": {
        "b1": {
            "input": [{"node": "left/topicA"}],
            "output": ["right/topicB"],
        },
    },
}


@pytest.fixture
def client_factory():
    return FakeClientFactory()


@pytest.fixture
def connect(client_factory):
    """open_connection bound to the test's client factory."""
    def _connect(connection):
        return open_connection(connection, client_factory)
    return _connect


@pytest.fixture
def raw_config():
    """A mutable copy of the two-server config."""
    return copy.deepcopy(TWO_SERVERS)


@pytest.fixture
def make_registry(client_factory):
    """Build a registry from a raw config dict using fake clients."""
    def _make(raw, transforms=None):
        config = ConfigLoader.parse(raw, transforms)
        return ConnectionRegistry.from_config(config, client_factory=client_factory)
    return _make
