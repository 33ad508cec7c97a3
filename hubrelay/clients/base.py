# hubrelay/clients/base.py
"""
Broker client contract.

A client owns one transport session to one broker. It never retries on its
own: it reports open/close/error to its listener and lets the Connection
decide what happens next.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Protocol

from hubrelay.message import Message


class ClientListener(Protocol):
    """Receiver of client notifications (implemented by Connection)."""

    def client_opened(self, client: "BrokerClient") -> None: ...

    def client_closed(self, client: "BrokerClient") -> None: ...

    def client_errored(self, client: "BrokerClient", exc: BaseException) -> None: ...

    def message_received(self, client: "BrokerClient", message: Message, subscription: str) -> None: ...


class BrokerClient(ABC):
    """Abstract base class for all broker transports."""

    def __init__(self, url: str, listener: ClientListener):
        self.url = url
        self.listener = listener

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(url={self.url!r})"

    @abstractmethod
    def open(self) -> None:
        """Start connecting. Completion is reported via client_opened/client_errored."""

    @abstractmethod
    def subscribe(self, node: str, pattern: Optional[str], subscription_id: str) -> None:
        """Subscribe to a node; deliveries carry `subscription_id`."""

    @abstractmethod
    def publish(self, node: str, message: Message) -> None:
        """Publish a message to a node. Fire-and-forget."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the session. No notifications follow an explicit close."""
