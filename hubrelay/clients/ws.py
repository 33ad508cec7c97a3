# hubrelay/clients/ws.py
"""
ws.py — MHub client over WebSocket (one JSON object per text frame).

This is MHub's native transport (ws:// and wss:// endpoints). Outbound frames
go through a queue drained by a single sender task, so publishes stay in
order without the caller awaiting anything.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional, Set

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from hubrelay.clients.base import ClientListener
from hubrelay.clients.protocol import JsonBrokerClient

MAX_FRAME_SIZE = 2 ** 22  # bytes


class WsBrokerClient(JsonBrokerClient):

    def __init__(self, url: str, listener: ClientListener):
        super().__init__(url, listener)
        self._ws: Optional[ClientConnection] = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._sender: Optional[asyncio.Task] = None
        self._closing: Set[asyncio.Task] = set()

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closed

    async def _open_transport(self) -> None:
        self._ws = await connect(self.url, max_size=MAX_FRAME_SIZE)
        self._sender = asyncio.get_running_loop().create_task(self._drain_outbox(self._ws))

    async def _frames(self) -> AsyncIterator[str]:
        # Iteration ends on a clean close and raises ConnectionClosedError otherwise
        async for frame in self._ws:
            yield frame

    def _write_frame(self, frame: str) -> None:
        self._outbox.put_nowait(frame)

    async def _drain_outbox(self, ws: ClientConnection) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await ws.send(frame)
            except ConnectionClosed:
                # The reader sees the same close and reports it
                return

    def _close_transport(self) -> None:
        if self._sender is not None:
            self._sender.cancel()
            self._sender = None
        if self._ws is not None:
            ws, self._ws = self._ws, None
            task = asyncio.get_running_loop().create_task(ws.close())
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)
