"""
clients — Broker client implementations.

    BrokerClient      abstract transport contract
    ClientListener    notification receiver (Connection implements it)
    JsonBrokerClient  MHub JSON command protocol, transport left abstract
    TcpBrokerClient   MHub over TCP, one JSON object per line
    WsBrokerClient    MHub over WebSocket, one JSON object per text frame
    create_client     pick an implementation from the endpoint URL scheme
"""

from typing import Callable, Dict, Type
from urllib.parse import urlsplit

from hubrelay.clients.base import BrokerClient, ClientListener
from hubrelay.clients.protocol import JsonBrokerClient
from hubrelay.clients.tcp import TcpBrokerClient
from hubrelay.clients.ws import WsBrokerClient
from hubrelay.errors import UnsupportedEndpoint

CLIENT_FACTORY = Callable[[str, ClientListener], BrokerClient]

SCHEMES: Dict[str, Type[BrokerClient]] = {
    "tcp": TcpBrokerClient,
    "ws": WsBrokerClient,
    "wss": WsBrokerClient,
}


def client_class_for(url: str) -> Type[BrokerClient]:
    try:
        return SCHEMES[urlsplit(url).scheme.lower()]
    except KeyError:
        raise UnsupportedEndpoint(url) from None


def create_client(url: str, listener: ClientListener) -> BrokerClient:
    return client_class_for(url)(url, listener)


__all__ = [
    "BrokerClient",
    "ClientListener",
    "JsonBrokerClient",
    "TcpBrokerClient",
    "WsBrokerClient",
    "CLIENT_FACTORY",
    "SCHEMES",
    "client_class_for",
    "create_client",
]
