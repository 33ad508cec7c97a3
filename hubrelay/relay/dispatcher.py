# hubrelay/relay/dispatcher.py
"""
dispatcher.py — Per-connection message pipeline built on aiostream.

Inbound deliveries are queued by the Connection and pulled through a stream:

    queue → transform (concurrent, unordered) → validate → log errors
          → filter → flatmap(one item per result message) → fan-out publish

Transforms run concurrently up to `max_concurrent`, so a slow transform never
holds back unrelated messages. No ordering is promised.

Every step catches its own failures and records them on the Delivery: an
exception escaping a step would end the stream for the whole connection.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, AsyncIterable, Iterable, List, Optional, Tuple

from aiostream import pipe, stream

from hubrelay.errors import InvalidTransformedMessage, NotConnectedError
from hubrelay.message import Message, coerce_transformed
from hubrelay.relay.delivery_state import Delivery, PublishResult, PublishStatus
from hubrelay.routing import Binding

if TYPE_CHECKING:
    from hubrelay.relay.registry import ConnectionRegistry

logger = logging.getLogger("hubrelay.dispatch")


class Dispatcher:

    def __init__(self, name: str, registry: "ConnectionRegistry", max_concurrent: int = 50):
        self.name = name
        self.registry = registry
        self.max_concurrent = max_concurrent

        # Inbound deliveries feed the stream
        self.queue: asyncio.Queue[Delivery] = asyncio.Queue()

        self._running = False
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Stream Source
    # ------------------------------------------------------------------

    def submit(self, delivery: Delivery) -> None:
        """Queue a delivery. Called from broker client callbacks."""
        self.queue.put_nowait(delivery)

    async def _queue_source(self) -> AsyncIterable[Delivery]:
        while self._running:
            try:
                delivery = await asyncio.wait_for(self.queue.get(), timeout=0.5)
                yield delivery
                self.queue.task_done()
            except asyncio.TimeoutError:
                continue

    # ------------------------------------------------------------------
    # Pipeline Steps
    # ------------------------------------------------------------------

    async def _transform_step(self, state: Delivery) -> Delivery:
        binding = state.binding
        if binding.transform is None:
            state.results = [state.message]
            return state

        try:
            result = binding.transform(state.message)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            state.error = exc
            return state

        if result is None:
            logger.debug(f"#{state.subscription} [{self.name}] {state.message.topic}: suppressed by transform")
            state.results = []
        else:
            state.transformed = result
        return state

    async def _validate_step(self, state: Delivery) -> Delivery:
        if state.error or state.results is not None:
            return state
        try:
            state.results = coerce_transformed(state.transformed)
        except Exception as exc:
            state.error = exc
        return state

    async def _handle_errors(self, state: Delivery) -> Delivery:
        if state.error is not None:
            prefix = f"#{state.subscription} [{self.name}] {state.message.topic}"
            if isinstance(state.error, InvalidTransformedMessage):
                logger.error(f"{prefix}: {state.error}")
            else:
                logger.error(
                    f"{prefix}: transform '{state.binding.transform_ref}' failed: "
                    f"{state.error.__class__.__name__}: {state.error}",
                    exc_info=state.error,
                )
        return state

    async def _expand_results(self, state: Delivery) -> AsyncIterable[Tuple[Binding, Message]]:
        """Fan-out step: one item per message to publish."""
        for message in state.results:
            yield state.binding, message

    async def _publish_step(self, item: Tuple[Binding, Message]) -> None:
        binding, message = item
        self.fan_out(message, binding)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def fan_out(self, message: Message, binding: Binding) -> List[PublishResult]:
        """
        Publish `message` to every output of `binding`, best effort.

        Outputs whose connection is down are skipped and reported; nothing is
        queued or retried. A failing output never stops the remaining ones.
        """
        results = []
        for output in binding.output:
            logger.info(f" -> [{output}]: {message.topic}")
            target = self.registry.get(output.server)
            try:
                if target is None:
                    raise NotConnectedError(f"{output.server}: unknown server")
                target.publish(output.node, message)
            except NotConnectedError:
                logger.warning(f"  -> error: {output.server}: not connected")
                results.append(PublishResult(output, PublishStatus.UNAVAILABLE))
            except Exception as exc:
                logger.error(f"  -> error: {output}: publish failed: {exc}")
                results.append(PublishResult(output, PublishStatus.FAILED, exc))
            else:
                results.append(PublishResult(output, PublishStatus.PUBLISHED))
        return results

    # ------------------------------------------------------------------
    # Build the Pipeline
    # ------------------------------------------------------------------

    def build_pipeline(self, source: AsyncIterable[Delivery] | Iterable[Delivery]):
        return (
            stream.iterate(source)
            | pipe.map(self._transform_step, ordered=False, task_limit=self.max_concurrent)
            | pipe.map(self._validate_step)
            | pipe.map(self._handle_errors)
            | pipe.filter(lambda s: s.error is None and bool(s.results))
            | pipe.flatmap(self._expand_results)
            | pipe.action(self._publish_step)
        )

    # ------------------------------------------------------------------
    # Run the Pump
    # ------------------------------------------------------------------

    async def process(self, *deliveries: Delivery) -> None:
        """Run the given deliveries through the pipeline, bypassing the queue."""
        pipeline = self.build_pipeline(deliveries)
        async with pipeline.stream() as streamer:
            async for _ in streamer:
                pass

    async def run(self) -> None:
        self._running = True
        pipeline = self.build_pipeline(self._queue_source())
        try:
            async with pipeline.stream() as streamer:
                async for _ in streamer:
                    pass
        except asyncio.CancelledError:
            pass
        finally:
            self._running = False

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
