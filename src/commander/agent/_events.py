"""Background agent event monitor: observability only.

A reader task pumps decoded events into a bounded queue; a drain task logs
them. One :class:`asyncio.Event` is the stop signal, checked before every
event is consumed. Nothing here can fail the task.
"""

from __future__ import annotations

import asyncio
from typing import Any

from commander.agent._client import OpencodeClient
from commander.agent._session import ClientFactory
from commander.logger import logger
from commander.types import Container


class EventMonitor:
    def __init__(
        self,
        client_factory: ClientFactory = OpencodeClient,
        *,
        max_pending: int = 256,
    ) -> None:
        self._client_factory = client_factory
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_pending)
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self.received = 0
        self.dropped = 0

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def start(self, container: Container) -> EventMonitor:
        """Begin streaming events for *container*; returns self as the stop handle."""
        if self._tasks:
            raise RuntimeError("EventMonitor already started")
        self._tasks = [
            asyncio.create_task(self._read(container), name=f"agent-events-{container.id}"),
            asyncio.create_task(self._drain(), name=f"agent-events-drain-{container.id}"),
        ]
        return self

    async def stop(self) -> None:
        """Signal, cancel and reap both tasks. Trailing queued events are dropped."""
        self._stop.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._tasks:
            logger.debug("Event monitoring stopped", received=self.received, dropped=self.dropped)

    async def _read(self, container: Container) -> None:
        try:
            async with self._client_factory(container.base_url) as client:
                async for event in client.subscribe_events():
                    if self._stop.is_set():
                        break
                    try:
                        self._queue.put_nowait(event)
                    except asyncio.QueueFull:
                        self.dropped += 1
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._stop.is_set():
                logger.warning("Event monitoring stopped", error=str(exc) or type(exc).__name__)

    async def _drain(self) -> None:
        while not self._stop.is_set():
            event = await self._queue.get()
            if self._stop.is_set():
                break
            self.received += 1
            logger.debug(
                "Agent event",
                type=event.get("type", "unknown"),
                properties=event.get("properties") or {},
            )
