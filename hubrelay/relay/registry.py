# hubrelay/relay/registry.py
"""
registry.py — Server name → Connection, owned by the relay process.

Populated once at startup and read-only afterwards; dispatchers only read it
to find fan-out targets.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from hubrelay.clients import CLIENT_FACTORY, create_client
from hubrelay.config import RelayConfig
from hubrelay.relay.connection import Connection

logger = logging.getLogger("hubrelay.registry")


class ConnectionRegistry:

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        client_factory: CLIENT_FACTORY = create_client,
    ) -> "ConnectionRegistry":
        """Create one Connection per configured server."""
        registry = cls()
        for name, url in config.connections.items():
            registry.add(Connection(
                name,
                url,
                config.bindings,
                registry,
                client_factory=client_factory,
                reconnect_delay=config.settings.reconnect_delay,
                max_concurrent_dispatches=config.settings.max_concurrent_dispatches,
            ))
        return registry

    def add(self, connection: Connection) -> None:
        if connection.name in self._connections:
            raise ValueError(f"Duplicate connection: {connection.name}")
        self._connections[connection.name] = connection
        logger.debug(
            f"Registered connection '{connection.name}' "
            f"({len(connection.bindings)} binding(s))"
        )

    def get(self, name: str) -> Optional[Connection]:
        return self._connections.get(name)

    def __getitem__(self, name: str) -> Connection:
        try:
            return self._connections[name]
        except KeyError:
            raise KeyError(f"Connection '{name}' not configured") from None

    def __contains__(self, name: object) -> bool:
        return name in self._connections

    def __iter__(self) -> Iterator[Connection]:
        return iter(self._connections.values())

    def __len__(self) -> int:
        return len(self._connections)

    def names(self) -> List[str]:
        return list(self._connections.keys())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_all(self) -> None:
        for connection in self:
            connection.start()

    async def stop_all(self) -> None:
        for connection in self:
            await connection.stop()
