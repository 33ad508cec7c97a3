# hubrelay/clients/protocol.py
"""
protocol.py — MHub JSON command protocol, independent of the transport.

Every frame is one JSON object:

    → {"type": "subscribe", "node": "default", "pattern": "foo*", "id": "b1", "seq": 1}
    → {"type": "publish", "node": "default", "topic": "foo", "data": 1, "headers": {}, "seq": 2}
    ← {"type": "message", "topic": "foo", "data": 1, "headers": {}, "subscription": "b1"}
    ← {"type": "suback" | "puback" | "pingack", "seq": 1}
    ← {"type": "error", "message": "...", "seq": 2}

Subclasses supply the transport: how to connect, how to write one frame,
how to read frames until the peer goes away, and how to tear it down.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import abstractmethod
from typing import Any, AsyncIterator, Dict, Optional, Union

from hubrelay.clients.base import BrokerClient, ClientListener
from hubrelay.errors import MalformedMessage, NotConnectedError
from hubrelay.message import Message

logger = logging.getLogger("hubrelay.client")


class JsonBrokerClient(BrokerClient):

    def __init__(self, url: str, listener: ClientListener):
        super().__init__(url, listener)
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self._seq = 0

    # ------------------------------------------------------------------
    # Transport hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _open_transport(self) -> None:
        """Establish the transport. Raising reports client_errored."""

    @abstractmethod
    def _frames(self) -> AsyncIterator[Union[str, bytes]]:
        """Yield inbound frames; return when the peer closes."""

    @abstractmethod
    def _write_frame(self, frame: str) -> None:
        """Queue one outbound frame. Must not block."""

    @abstractmethod
    def _close_transport(self) -> None:
        """Drop the transport without notifying anyone."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    # ------------------------------------------------------------------
    # BrokerClient API
    # ------------------------------------------------------------------

    def open(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def subscribe(self, node: str, pattern: Optional[str], subscription_id: str) -> None:
        command: Dict[str, Any] = {"type": "subscribe", "node": node, "id": subscription_id}
        if pattern is not None:
            command["pattern"] = pattern
        self._send(command)

    def publish(self, node: str, message: Message) -> None:
        command: Dict[str, Any] = {
            "type": "publish",
            "node": node,
            "topic": message.topic,
            "headers": message.headers,
        }
        if message.data is not None:
            command["data"] = message.data
        self._send(command)

    def close(self) -> None:
        self._closed = True
        self._close_transport()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _send(self, command: Dict[str, Any]) -> None:
        if not self.is_open:
            raise NotConnectedError(f"{self.url}: not connected")
        self._seq += 1
        command["seq"] = self._seq
        self._write_frame(json.dumps(command, separators=(",", ":")))

    async def _run(self) -> None:
        try:
            await self._open_transport()
        except Exception as exc:
            self._notify_error(exc)
            return

        if self._closed:
            self._close_transport()
            return

        self._notify_open()

        try:
            async for frame in self._frames():
                self._handle_frame(frame)
        except Exception as exc:
            self._notify_error(exc)
            return

        self._notify_close()

    def _handle_frame(self, frame: Union[str, bytes]) -> None:
        frame = frame.strip()
        if not frame:
            return
        try:
            response = json.loads(frame)
        except ValueError:
            logger.warning(f"{self.url}: undecodable frame dropped: {frame[:80]!r}")
            return
        if not isinstance(response, dict):
            logger.warning(f"{self.url}: unexpected response dropped: {response!r}")
            return

        kind = response.get("type")
        if kind == "message":
            try:
                message = Message.from_mapping(response)
            except MalformedMessage as exc:
                logger.warning(f"{self.url}: {exc}, dropped: {response!r}")
                return
            if self._closed:
                return
            self.listener.message_received(self, message, response.get("subscription"))
        elif kind == "error":
            logger.warning(f"{self.url}: broker error: {response.get('message')}")
        elif kind in ("suback", "puback", "pingack"):
            pass
        else:
            logger.debug(f"{self.url}: ignoring response of type {kind!r}")

    def _notify_open(self) -> None:
        if not self._closed:
            self.listener.client_opened(self)

    def _notify_close(self) -> None:
        if not self._closed:
            self._closed = True
            self._close_transport()
            self.listener.client_closed(self)

    def _notify_error(self, exc: BaseException) -> None:
        if not self._closed:
            self._closed = True
            self._close_transport()
            self.listener.client_errored(self, exc)
