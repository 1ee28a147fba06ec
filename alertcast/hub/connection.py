"""WebSocket bridge between one overlay client and the hub."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from aiohttp import WSMsgType, web

from alertcast.hub.hub import SEND_QUEUE_SIZE, Hub, SendQueue

logger = logging.getLogger("DisplayConnection")

# Time allowed to write a batch to the peer.
WRITE_WAIT = 10.0
# Time allowed to read the next pong from the peer.
PONG_WAIT = 60.0
# Send pings with this period. Must be less than PONG_WAIT.
PING_PERIOD = PONG_WAIT * 9 / 10
# Maximum inbound message size; clients only send control frames.
MAX_MESSAGE_SIZE = 512


def prepare_websocket() -> web.WebSocketResponse:
    return web.WebSocketResponse(autoping=False, max_msg_size=MAX_MESSAGE_SIZE)


class DisplayConnection:
    """Reader detects liveness, writer drains the send queue."""

    def __init__(
        self,
        hub: Hub,
        ws: web.WebSocketResponse,
        *,
        queue_size: int = SEND_QUEUE_SIZE,
        ping_period: float = PING_PERIOD,
        pong_wait: float = PONG_WAIT,
        write_wait: float = WRITE_WAIT,
        clock: Callable[[], float] = time.monotonic,
        remote: str | None = None,
    ) -> None:
        self.hub = hub
        self.ws = ws
        self.send = SendQueue(queue_size)
        self.ping_period = ping_period
        self.pong_wait = pong_wait
        self.write_wait = write_wait
        self.remote = remote or "unknown"
        self._clock = clock

    async def serve(self) -> None:
        """Run until the peer goes away, then leave the hub."""
        self.hub.register(self)
        logger.info(f"Overlay connected from {self.remote}")
        writer = asyncio.create_task(self.write_pump(), name=f"ws-writer-{self.remote}")
        try:
            await self.read_pump()
        finally:
            self.hub.unregister(self)
            try:
                await asyncio.wait_for(writer, self.write_wait)
            except asyncio.TimeoutError:
                logger.debug(f"Writer for {self.remote} did not stop in time")
            if not self.ws.closed:
                await self.ws.close()
            logger.info(f"Overlay disconnected from {self.remote}")

    async def read_pump(self) -> None:
        deadline = self._clock() + self.pong_wait
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.info(f"No pong from {self.remote} within {self.pong_wait}s")
                return
            try:
                msg = await self.ws.receive(timeout=remaining)
            except asyncio.TimeoutError:
                logger.info(f"No pong from {self.remote} within {self.pong_wait}s")
                return

            if msg.type == WSMsgType.PONG:
                deadline = self._clock() + self.pong_wait
            elif msg.type == WSMsgType.PING:
                await self.ws.pong(msg.data)
            elif msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED):
                return
            elif msg.type == WSMsgType.ERROR:
                logger.debug(f"Read error from {self.remote}: {self.ws.exception()}")
                return
            # Application messages from overlays are ignored.

    async def write_pump(self) -> None:
        next_ping = self._clock() + self.ping_period
        try:
            while True:
                wait = max(next_ping - self._clock(), 0.0)
                try:
                    payload = await asyncio.wait_for(self.send.get(), wait)
                except asyncio.TimeoutError:
                    await asyncio.wait_for(self.ws.ping(), self.write_wait)
                    next_ping = self._clock() + self.ping_period
                    continue

                if payload is None:
                    # Hub closed the queue
                    return

                batch = [payload, *self.send.drain_nowait()]
                await asyncio.wait_for(self._write_batch(batch), self.write_wait)
        except (asyncio.TimeoutError, ConnectionError, RuntimeError) as e:
            logger.info(f"Write to {self.remote} failed: {type(e).__name__}: {e}")
        finally:
            if not self.ws.closed:
                await self.ws.close()

    async def _write_batch(self, batch: list[bytes]) -> None:
        for payload in batch:
            await self.ws.send_str(payload.decode())
