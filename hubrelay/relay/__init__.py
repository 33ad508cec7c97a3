"""
relay — Connection lifecycle and message dispatch.

Key classes:
    ConnectionRegistry  server name → Connection, built once from config
    Connection          one broker session with reconnect + inbound routing
    Dispatcher          queue-backed, aiostream-powered pipeline per connection
    Delivery            inbound message flowing through the pipeline

Usage:
    from hubrelay.relay import bootstrap

    registry = await bootstrap("config/relay.yaml")
    registry.start_all()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional

from hubrelay.clients import CLIENT_FACTORY, create_client
from hubrelay.config import ConfigLoader
from hubrelay.relay.connection import RECONNECT_DELAY, Connection, ConnectionState
from hubrelay.relay.delivery_state import Delivery, PublishResult, PublishStatus
from hubrelay.relay.dispatcher import Dispatcher
from hubrelay.relay.registry import ConnectionRegistry
from hubrelay.routing import TRANSFORM

logger = logging.getLogger("hubrelay")


async def bootstrap(
    config_path: str | Path = "config/relay.yaml",
    transforms: Optional[Mapping[str, TRANSFORM]] = None,
    client_factory: CLIENT_FACTORY = create_client,
) -> ConnectionRegistry:
    """Load config and create the registry (connections are not started)."""
    logger.info(f"Using config file {config_path}")
    config = ConfigLoader.load(config_path, transforms)

    registry = ConnectionRegistry.from_config(config, client_factory=client_factory)

    logger.info(f"Connections: {registry.names()}")
    logger.info(f"Bindings: {list(config.bindings.keys())}")
    return registry


__all__ = [
    "RECONNECT_DELAY",
    "Connection",
    "ConnectionState",
    "ConnectionRegistry",
    "Delivery",
    "Dispatcher",
    "PublishResult",
    "PublishStatus",
    "bootstrap",
]
