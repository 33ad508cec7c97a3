"""
test_connection.py — Connection lifecycle: connect, subscribe, reconnect.

These tests drive the state machine through a fake broker client whose
open/close/error notifications are fired by hand.
"""

import asyncio

import pytest

from hubrelay.errors import NotConnectedError
from hubrelay.message import Message
from hubrelay.relay import ConnectionState

from conftest import LEFT_URL


class TestConnect:

    @pytest.mark.asyncio
    async def test_initial_state(self, make_registry, raw_config):
        registry = make_registry(raw_config)
        left = registry["left"]

        assert left.state is ConnectionState.IDLE
        assert left.client is None
        assert not left.reconnect_pending

    @pytest.mark.asyncio
    async def test_start_twice_creates_one_client(self, make_registry, raw_config, client_factory):
        """A second start() while connecting is a no-op."""
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            left.start()
            left.start()

            assert len(client_factory.clients_for(LEFT_URL)) == 1
            assert client_factory.latest(LEFT_URL).opened
            assert left.state is ConnectionState.CONNECTING
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_open_subscribes_each_input(self, make_registry, raw_config, client_factory):
        raw_config["bindings"]["b1"]["input"] = [
            {"node": "left/topicA", "pattern": "x*"},
            "left/topicC",
            "right/ignored",
        ]
        raw_config["bindings"]["b2"] = {"input": "left/other", "output": "right/out"}
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            left.start()
            client = client_factory.latest(LEFT_URL)
            client.fire_open()

            assert left.state is ConnectionState.CONNECTED
            assert left.client is client
            assert left.is_connected
            assert sorted(client.subscriptions, key=str) == sorted([
                ("topicA", "x*", "b1"),
                ("topicC", None, "b1"),
                ("other", None, "b2"),
            ], key=str)
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_server_without_bindings_subscribes_nothing(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        try:
            client = connect(registry["right"])
            assert registry["right"].bindings == {}
            assert client.subscriptions == []
        finally:
            await registry.stop_all()


class TestReconnect:

    @pytest.mark.asyncio
    async def test_close_closes_client_and_arms_timer(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            client = connect(left)
            client.fire_close()

            assert client.closed
            assert left.client is None
            assert left.state is ConnectionState.RECONNECT_WAIT
            assert left.reconnect_pending
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_close_then_error_arms_one_timer(self, make_registry, raw_config, connect, client_factory):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            client = connect(left)
            client.fire_close()
            timer = left._reconnect_timer
            client.fire_error()

            assert left._reconnect_timer is timer

            await asyncio.sleep(0.15)
            # One reconnect attempt, not two
            assert len(client_factory.clients_for(LEFT_URL)) == 2
            assert left.state is ConnectionState.CONNECTING
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_repeated_reconnect_requests_are_debounced(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            connect(left)
            left._reconnect()
            timer = left._reconnect_timer
            left._reconnect()
            left._reconnect()
            assert left._reconnect_timer is timer
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_timer_fires_new_connect(self, make_registry, raw_config, connect, client_factory):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            first = connect(left)
            first.fire_error()

            await asyncio.sleep(0.15)

            second = client_factory.latest(LEFT_URL)
            assert second is not first
            assert second.opened
            assert not left.reconnect_pending

            second.fire_open()
            assert left.state is ConnectionState.CONNECTED
            assert second.subscriptions == [("topicA", None, "b1")]
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_error_while_connecting_aborts_attempt(self, make_registry, raw_config, client_factory):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            left.start()
            attempt = client_factory.latest(LEFT_URL)
            attempt.fire_error(ConnectionRefusedError("refused"))

            assert attempt.closed
            assert left.state is ConnectionState.RECONNECT_WAIT
            assert left.client is None
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_retries_forever_at_fixed_interval(self, make_registry, raw_config, client_factory):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            left.start()
            for _ in range(3):
                client_factory.latest(LEFT_URL).fire_error()
                await asyncio.sleep(0.1)
            assert len(client_factory.clients_for(LEFT_URL)) == 4
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_stale_client_notifications_ignored(self, make_registry, raw_config, connect, client_factory):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            old = connect(left)
            old.fire_close()
            await asyncio.sleep(0.15)
            new = client_factory.latest(LEFT_URL)
            new.fire_open()

            # Late notifications from the discarded client change nothing
            old.fire_error()
            old.fire_open()
            assert left.client is new
            assert left.state is ConnectionState.CONNECTED
            assert not left.reconnect_pending
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_reconnect_does_not_block_other_connections(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        try:
            left_client = connect(registry["left"])
            right_client = connect(registry["right"])
            left_client.fire_close()

            assert registry["right"].state is ConnectionState.CONNECTED
            assert not registry["right"].reconnect_pending
            assert not right_client.closed
        finally:
            await registry.stop_all()


class TestInbound:

    @pytest.mark.asyncio
    async def test_message_queued_for_dispatch(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            client = connect(left)
            # Stop the pump so the queue can be inspected
            await left.dispatcher.stop()
            client.deliver(Message(topic="topicA", data=1), "b1")

            assert left.dispatcher.queue.qsize() == 1
            delivery = left.dispatcher.queue.get_nowait()
            assert delivery.subscription == "b1"
            assert delivery.source == "left"
            assert delivery.binding is left.bindings["b1"]
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_unknown_subscription_dropped(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            client = connect(left)
            await left.dispatcher.stop()
            client.deliver(Message(topic="t"), "no-such-binding")
            assert left.dispatcher.queue.qsize() == 0
        finally:
            await registry.stop_all()

    @pytest.mark.asyncio
    async def test_message_after_close_dropped(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        left = registry["left"]
        try:
            client = connect(left)
            await left.dispatcher.stop()
            client.fire_close()
            client.deliver(Message(topic="topicA"), "b1")
            assert left.dispatcher.queue.qsize() == 0
        finally:
            await registry.stop_all()


class TestPublish:

    @pytest.mark.asyncio
    async def test_publish_when_connected(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        try:
            client = connect(registry["right"])
            message = Message(topic="t", data=1)
            registry["right"].publish("topicB", message)
            assert client.published == [("topicB", message)]
        finally:
            await registry.stop_all()

    def test_publish_when_disconnected_raises(self, make_registry, raw_config):
        registry = make_registry(raw_config)
        with pytest.raises(NotConnectedError):
            registry["right"].publish("topicB", Message(topic="t"))


class TestStop:

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reconnect(self, make_registry, raw_config, connect, client_factory):
        registry = make_registry(raw_config)
        left = registry["left"]
        client = connect(left)
        client.fire_close()
        await left.stop()

        assert not left.reconnect_pending
        assert left.state is ConnectionState.IDLE
        await asyncio.sleep(0.1)
        assert len(client_factory.clients_for(LEFT_URL)) == 1
        await registry.stop_all()

    @pytest.mark.asyncio
    async def test_stop_closes_live_client(self, make_registry, raw_config, connect):
        registry = make_registry(raw_config)
        client = connect(registry["right"])
        await registry.stop_all()
        assert client.closed
        assert registry["right"].client is None
