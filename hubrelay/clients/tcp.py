# hubrelay/clients/tcp.py
"""
tcp.py — MHub client over plain TCP (newline-delimited JSON).

Writes are buffered on the asyncio transport without draining; the relay has
no backpressure.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional
from urllib.parse import urlsplit

from hubrelay.clients.base import ClientListener
from hubrelay.clients.protocol import JsonBrokerClient

DEFAULT_PORT = 13902
READ_LIMIT = 2 ** 22  # max line length in bytes


class TcpBrokerClient(JsonBrokerClient):

    def __init__(self, url: str, listener: ClientListener):
        super().__init__(url, listener)
        parts = urlsplit(url)
        self.host = parts.hostname or "localhost"
        self.port = parts.port or DEFAULT_PORT

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def is_open(self) -> bool:
        return self._writer is not None and not self._closed

    async def _open_transport(self) -> None:
        self._reader, self._writer = await asyncio.open_connection(
            self.host, self.port, limit=READ_LIMIT
        )

    async def _frames(self) -> AsyncIterator[bytes]:
        while True:
            line = await self._reader.readline()
            if not line:
                return
            yield line

    def _write_frame(self, frame: str) -> None:
        self._writer.write(frame.encode("utf-8") + b"\n")

    def _close_transport(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None
