# hubrelay/__init__.py
"""
hub-relay
=========
Relay messages between independent publish/subscribe brokers.
"""

from hubrelay.message import Message as Message
from hubrelay.relay import Connection as Connection
from hubrelay.relay import ConnectionRegistry as ConnectionRegistry
from hubrelay.relay import bootstrap as bootstrap
from hubrelay.routing import Binding as Binding
from hubrelay.routing import NodeSpec as NodeSpec
from hubrelay.routing import parse_node_spec as parse_node_spec


__all__ = [
    "Message",
    "Connection",
    "ConnectionRegistry",
    "bootstrap",
    "Binding",
    "NodeSpec",
    "parse_node_spec",
]

__version__ = "0.1.0"
