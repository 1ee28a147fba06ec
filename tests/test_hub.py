import pytest

from alertcast.hub.hub import SendQueue
from alertcast.shared.models.events import FollowEvent


class FakeClient:
    def __init__(self, maxsize: int = 256) -> None:
        self.send = SendQueue(maxsize)


class CountingQueue(SendQueue):
    def __init__(self, maxsize: int = 256) -> None:
        super().__init__(maxsize)
        self.close_calls = 0

    def close(self) -> bool:
        self.close_calls += 1
        return super().close()


def test_send_queue_offer_fails_when_full():
    queue = SendQueue(2)
    assert queue.offer(b"a")
    assert queue.offer(b"b")
    assert not queue.offer(b"c")
    assert queue.drain_nowait() == [b"a", b"b"]


def test_send_queue_close_is_idempotent_and_drops_backlog():
    queue = SendQueue(4)
    queue.offer(b"a")
    assert queue.close() is True
    assert queue.close() is False
    assert not queue.offer(b"b")
    assert queue.drain_nowait() == []


async def test_closed_queue_wakes_reader_with_none():
    queue = SendQueue(4)
    queue.offer(b"a")
    queue.close()
    assert await queue.get() is None


async def test_broadcast_reaches_every_client_in_order(hub):
    clients = [FakeClient() for _ in range(3)]
    for client in clients:
        hub.register(client)
    await hub.join()

    for i in range(5):
        hub.broadcast(f"msg-{i}".encode())
    await hub.join()

    expected = [f"msg-{i}".encode() for i in range(5)]
    for client in clients:
        assert client.send.drain_nowait() == expected


async def test_saturated_client_is_evicted_without_affecting_others(hub):
    slow = FakeClient(maxsize=1)
    healthy = [FakeClient() for _ in range(3)]
    for client in [slow, *healthy]:
        hub.register(client)
    await hub.join()

    for i in range(4):
        hub.broadcast(f"{i}".encode())
    await hub.join()

    assert slow.send.closed
    assert hub.client_count == 3
    for client in healthy:
        assert client.send.drain_nowait() == [b"0", b"1", b"2", b"3"]


async def test_unregister_twice_closes_queue_once(hub):
    client = FakeClient()
    client.send = CountingQueue()
    hub.register(client)
    await hub.join()

    hub.unregister(client)
    hub.unregister(client)
    await hub.join()

    assert client.send.closed
    assert client.send.close_calls == 1
    assert hub.client_count == 0


async def test_unregister_unknown_client_is_noop(hub):
    client = FakeClient()
    hub.unregister(client)
    await hub.join()
    assert not client.send.closed


async def test_late_client_misses_earlier_broadcast(hub):
    early = FakeClient()
    hub.register(early)
    hub.broadcast(b"first")
    late = FakeClient()
    hub.register(late)
    hub.broadcast(b"second")
    await hub.join()

    assert early.send.drain_nowait() == [b"first", b"second"]
    assert late.send.drain_nowait() == [b"second"]


async def test_publish_serializes_event(hub):
    client = FakeClient()
    hub.register(client)
    hub.publish(FollowEvent(user_name="viewer"))
    await hub.join()

    (payload,) = client.send.drain_nowait()
    assert b'"type":"twitch_follow"' in payload
    assert b'"user_name":"viewer"' in payload


async def test_stop_closes_all_clients(hub):
    clients = [FakeClient() for _ in range(2)]
    for client in clients:
        hub.register(client)
    await hub.join()

    await hub.stop()

    assert not hub.running
    assert all(client.send.closed for client in clients)
