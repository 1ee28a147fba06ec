"""In-process broadcast hub.

A single control loop owns the set of display connections. Register,
unregister and broadcast requests are posted to its inbox and applied
in order, so the client set needs no lock.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from alertcast.shared.models.events import NormalizedEvent

logger = logging.getLogger("Hub")

SEND_QUEUE_SIZE = 256

_REGISTER = "register"
_UNREGISTER = "unregister"
_BROADCAST = "broadcast"


class SendQueue:
    """Bounded per-client outbound queue.

    ``offer()`` never blocks. ``close()`` drops any backlog and wakes a
    blocked reader, which then sees ``None``.
    """

    def __init__(self, maxsize: int = SEND_QUEUE_SIZE) -> None:
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def offer(self, payload: bytes) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> bool:
        """Close the queue. Returns False if it was already closed."""
        if self._closed:
            return False
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)
        return True

    async def get(self) -> bytes | None:
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def drain_nowait(self) -> list[bytes]:
        """Take everything already queued without waiting."""
        items: list[bytes] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is None:
                break
            items.append(item)
        return items


class HubClient(Protocol):
    send: SendQueue


class Hub:
    """Fans every broadcast payload out to all registered clients."""

    def __init__(self) -> None:
        self._clients: set[HubClient] = set()
        self._inbox: asyncio.Queue[tuple[str, object]] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def register(self, client: HubClient) -> None:
        self._inbox.put_nowait((_REGISTER, client))

    def unregister(self, client: HubClient) -> None:
        self._inbox.put_nowait((_UNREGISTER, client))

    def broadcast(self, payload: bytes) -> None:
        self._inbox.put_nowait((_BROADCAST, payload))

    def publish(self, event: NormalizedEvent) -> None:
        """Serialize a normalized event and broadcast it."""
        logger.info(f"Broadcasting {event.type}")
        self.broadcast(event.to_payload())

    async def join(self) -> None:
        """Wait until every request posted so far has been applied."""
        await self._inbox.join()

    async def run(self) -> None:
        logger.info("Hub control loop started")
        while True:
            op, item = await self._inbox.get()
            try:
                if op == _REGISTER:
                    self._clients.add(item)  # type: ignore[arg-type]
                    logger.debug(f"Client registered ({len(self._clients)} connected)")
                elif op == _UNREGISTER:
                    self._remove(item)  # type: ignore[arg-type]
                elif op == _BROADCAST:
                    self._fan_out(item)  # type: ignore[arg-type]
            finally:
                self._inbox.task_done()

    def _remove(self, client: HubClient) -> None:
        if client not in self._clients:
            return
        self._clients.discard(client)
        client.send.close()
        logger.debug(f"Client unregistered ({len(self._clients)} connected)")

    def _fan_out(self, payload: bytes) -> None:
        for client in list(self._clients):
            if not client.send.offer(payload):
                logger.warning("Client send queue full, disconnecting")
                self._remove(client)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name="hub")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        for client in list(self._clients):
            client.send.close()
        self._clients.clear()
        logger.info("Hub stopped")
