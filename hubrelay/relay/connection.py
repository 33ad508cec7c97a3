# hubrelay/relay/connection.py
"""
connection.py — One broker session, kept alive forever.

State machine:

    IDLE ──start()──▶ CONNECTING ──open──▶ CONNECTED
                          │                    │
                          └──close/error──┬────┘
                                          ▼
                                   RECONNECT_WAIT ──timer──▶ CONNECTING

All transitions run as event-loop callbacks (client notifications, the
reconnect timer), so they never interleave with each other.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict, Mapping, Optional

from hubrelay.clients import CLIENT_FACTORY, BrokerClient, create_client
from hubrelay.errors import NotConnectedError
from hubrelay.message import Message
from hubrelay.relay.delivery_state import Delivery
from hubrelay.relay.dispatcher import Dispatcher
from hubrelay.routing import Binding, build_binding_table

if TYPE_CHECKING:
    from hubrelay.relay.registry import ConnectionRegistry

logger = logging.getLogger("hubrelay.connection")

RECONNECT_DELAY = 3.0  # seconds, fixed (no backoff)


class ConnectionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_WAIT = "reconnect-wait"


class Connection:
    """
    Lifecycle of the session to one server, plus inbound routing.

    `bindings` holds only the bindings subscribing on this server, built once
    here and reused on every reconnect.
    """

    def __init__(
        self,
        name: str,
        url: str,
        bindings: Mapping[str, Binding],
        registry: "ConnectionRegistry",
        *,
        client_factory: CLIENT_FACTORY = create_client,
        reconnect_delay: float = RECONNECT_DELAY,
        max_concurrent_dispatches: int = 50,
    ):
        self.name = name
        self.url = url
        self.bindings: Dict[str, Binding] = build_binding_table(name, bindings)
        self.reconnect_delay = reconnect_delay

        self.state = ConnectionState.IDLE
        self.client: Optional[BrokerClient] = None

        self.dispatcher = Dispatcher(name, registry, max_concurrent=max_concurrent_dispatches)

        self._client_factory = client_factory
        self._connecting: Optional[BrokerClient] = None
        self._reconnect_timer: Optional[asyncio.TimerHandle] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(name={self.name!r}, url={self.url!r}, state={self.state.value})"

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the dispatch pump and the first connect attempt."""
        self.dispatcher.start()
        if self.state is not ConnectionState.IDLE:
            return
        self._connect()

    async def stop(self) -> None:
        """Drop the session for good (process shutdown)."""
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
        self._discard_clients()
        self.state = ConnectionState.IDLE
        await self.dispatcher.stop()

    def _connect(self) -> None:
        if self._connecting is not None:
            return
        client = self._client_factory(self.url, self)
        self._connecting = client
        self.state = ConnectionState.CONNECTING
        logger.info(f"[{self.name}] connecting to {self.url}")
        client.open()

    def _reconnect(self) -> None:
        self._discard_clients()
        self.state = ConnectionState.RECONNECT_WAIT
        if self._reconnect_timer is None:
            logger.info(f"[{self.name}] reconnecting in {self.reconnect_delay}s")
            loop = asyncio.get_running_loop()
            self._reconnect_timer = loop.call_later(self.reconnect_delay, self._reconnect_fired)

    def _reconnect_fired(self) -> None:
        self._reconnect_timer = None
        self._connect()

    def _discard_clients(self) -> None:
        # Fields are cleared before close() so a synchronous close notification
        # from the client is seen as stale.
        if self._connecting is not None:
            client, self._connecting = self._connecting, None
            client.close()
        if self.client is not None:
            client, self.client = self.client, None
            client.close()

    def _is_current(self, client: BrokerClient) -> bool:
        return client is self._connecting or client is self.client

    def _subscribe(self) -> None:
        for binding_id, binding in self.bindings.items():
            for i in binding.input:
                self.client.subscribe(i.node.node, i.pattern, binding_id)

    # ------------------------------------------------------------------
    # Client notifications
    # ------------------------------------------------------------------

    def client_opened(self, client: BrokerClient) -> None:
        if client is not self._connecting:
            logger.debug(f"[{self.name}] ignoring open from stale client {client!r}")
            return
        logger.info(f"[{self.name}] connected")
        self.client = client
        self._connecting = None
        self.state = ConnectionState.CONNECTED
        try:
            self._subscribe()
        except Exception as exc:
            logger.error(f"[{self.name}] subscribe failed: {exc}")
            self._reconnect()

    def client_closed(self, client: BrokerClient) -> None:
        if not self._is_current(client):
            return
        logger.info(f"[{self.name}] closed")
        self._reconnect()

    def client_errored(self, client: BrokerClient, exc: BaseException) -> None:
        if not self._is_current(client):
            return
        logger.warning(f"[{self.name}] error: {exc}")
        self._reconnect()

    def message_received(self, client: BrokerClient, message: Message, subscription: str) -> None:
        if self.client is None or client is not self.client:
            logger.debug(f"[{self.name}] dropping message on {subscription!r}: not connected")
            return
        binding = self.bindings.get(subscription)
        if binding is None:
            logger.debug(f"[{self.name}] dropping message on unknown subscription {subscription!r}")
            return
        logger.info(f"#{subscription} [{self.name}] {message.topic}")
        self.dispatcher.submit(
            Delivery(message=message, subscription=subscription, binding=binding, source=self.name)
        )

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def publish(self, node: str, message: Message) -> None:
        """Publish on this server. Raises NotConnectedError without a live client."""
        if self.client is None:
            raise NotConnectedError(f"{self.name}: not connected")
        self.client.publish(node, message)
