import asyncio

from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestClient, TestServer

from alertcast.core.server import RelayServer
from alertcast.hub.connection import DisplayConnection, prepare_websocket


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.pings = 0
        self.closed = False

    async def send_str(self, data: str) -> None:
        self.sent.append(data)

    async def ping(self, message: bytes = b"") -> None:
        self.pings += 1

    async def close(self) -> None:
        self.closed = True


async def wait_for_clients(hub, count: int) -> None:
    for _ in range(100):
        await hub.join()
        if hub.client_count == count:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"expected {count} clients, have {hub.client_count}")


async def test_write_pump_sends_queued_payloads_in_order(hub):
    ws = FakeWebSocket()
    conn = DisplayConnection(hub, ws, ping_period=60)
    for payload in (b'{"n":1}', b'{"n":2}', b'{"n":3}'):
        assert conn.send.offer(payload)

    writer = asyncio.create_task(conn.write_pump())
    for _ in range(100):
        if len(ws.sent) == 3:
            break
        await asyncio.sleep(0.01)
    conn.send.close()
    await asyncio.wait_for(writer, 1)

    assert ws.sent == ['{"n":1}', '{"n":2}', '{"n":3}']
    assert ws.closed


async def test_write_pump_pings_when_idle(hub):
    ws = FakeWebSocket()
    conn = DisplayConnection(hub, ws, ping_period=0.02)
    writer = asyncio.create_task(conn.write_pump())
    await asyncio.sleep(0.1)
    conn.send.close()
    await asyncio.wait_for(writer, 1)

    assert ws.pings >= 2


async def test_overlay_receives_broadcast_and_disconnect_unregisters(hub):
    server = RelayServer(hub)
    async with TestClient(TestServer(server.app)) as client:
        ws = await client.ws_connect("/ws")
        await wait_for_clients(hub, 1)

        hub.broadcast(b'{"type":"follow","user_name":"viewer","channel_name":""}')
        msg = await ws.receive(timeout=2)
        assert msg.type == WSMsgType.TEXT
        assert msg.json()["user_name"] == "viewer"

        await ws.close()
        await wait_for_clients(hub, 0)


async def test_silent_peer_is_dropped_after_pong_wait(hub):
    async def handler(request):
        ws = prepare_websocket()
        await ws.prepare(request)
        await DisplayConnection(hub, ws, ping_period=0.05, pong_wait=0.2).serve()
        return ws

    app = web.Application()
    app.router.add_get("/ws", handler)
    async with TestClient(TestServer(app)) as client:
        ws = await client.ws_connect("/ws", autoping=False)
        await wait_for_clients(hub, 1)

        seen = []
        while True:
            msg = await ws.receive(timeout=2)
            seen.append(msg.type)
            if msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSED, WSMsgType.CLOSING):
                break

        assert WSMsgType.PING in seen
        await wait_for_clients(hub, 0)
