import asyncio
import json
import threading

import pytest

from postlight.broadcast import RELOAD_MESSAGE, ClientHandle, ReloadBroadcaster


class DummyClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.messages = []

    async def send(self, message):
        if self.fail:
            raise ConnectionError("connection reset")
        self.messages.append(message)


class DummyWS(DummyClient):
    def __init__(self):
        super().__init__()
        self.closed = asyncio.Event()

    async def wait_closed(self):
        await self.closed.wait()


def test_reload_message_is_json():
    assert json.loads(RELOAD_MESSAGE) == {"type": "reload"}


def test_register_and_unregister():
    broadcaster = ReloadBroadcaster()
    first = broadcaster.register(DummyClient())
    second = broadcaster.register(DummyClient())
    assert isinstance(first, ClientHandle)
    assert first != second
    assert len(broadcaster) == 2
    assert first in broadcaster

    broadcaster.unregister(first)
    broadcaster.unregister(first)
    assert first not in broadcaster
    assert len(broadcaster) == 1

    broadcaster.unregister(ClientHandle(999))
    assert len(broadcaster) == 1


def test_broadcast_drops_failing_client():
    broadcaster = ReloadBroadcaster()
    good_a, bad, good_b = DummyClient(), DummyClient(fail=True), DummyClient()
    broadcaster.register(good_a)
    bad_handle = broadcaster.register(bad)
    broadcaster.register(good_b)

    delivered = asyncio.run(broadcaster.broadcast())

    assert delivered == 2
    assert good_a.messages == [RELOAD_MESSAGE]
    assert good_b.messages == [RELOAD_MESSAGE]
    assert bad_handle not in broadcaster
    assert len(broadcaster) == 2

    assert asyncio.run(broadcaster.broadcast("again")) == 2
    assert good_a.messages == [RELOAD_MESSAGE, "again"]


def test_broadcast_without_clients():
    assert asyncio.run(ReloadBroadcaster().broadcast()) == 0


def test_broadcast_propagates_non_send_failures(monkeypatch):
    broadcaster = ReloadBroadcaster()
    broadcaster.register(DummyClient())

    async def boom(handle, client, message):
        raise RuntimeError("bug")

    monkeypatch.setattr(broadcaster, "_send", boom)
    with pytest.raises(RuntimeError):
        asyncio.run(broadcaster.broadcast())


def test_client_registered_after_snapshot_is_not_sent_to():
    broadcaster = ReloadBroadcaster()
    late = DummyClient()

    class RegisteringClient(DummyClient):
        async def send(self, message):
            broadcaster.register(late)
            await super().send(message)

    broadcaster.register(RegisteringClient())
    assert asyncio.run(broadcaster.broadcast()) == 1
    assert late.messages == []
    assert len(broadcaster) == 2


def test_close_all_forgets_clients():
    broadcaster = ReloadBroadcaster()
    client = DummyClient()
    broadcaster.register(client)
    broadcaster.close_all()
    assert len(broadcaster) == 0
    assert asyncio.run(broadcaster.broadcast()) == 0
    assert client.messages == []


def test_serve_client_registers_until_closed():
    broadcaster = ReloadBroadcaster()

    async def scenario():
        ws = DummyWS()
        task = asyncio.create_task(broadcaster.serve_client(ws))
        await asyncio.sleep(0)
        assert len(broadcaster) == 1
        await broadcaster.broadcast()
        ws.closed.set()
        await task
        return ws

    ws = asyncio.run(scenario())
    assert ws.messages == [RELOAD_MESSAGE]
    assert len(broadcaster) == 0


def test_broadcast_reload_without_loop():
    broadcaster = ReloadBroadcaster()
    broadcaster.register(DummyClient())
    assert broadcaster.broadcast_reload() is None


def test_broadcast_reload_with_closed_loop():
    loop = asyncio.new_event_loop()
    loop.close()
    assert ReloadBroadcaster(loop).broadcast_reload() is None


def test_broadcast_reload_from_another_thread():
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    try:
        broadcaster = ReloadBroadcaster(loop)
        client = DummyClient()
        broadcaster.register(client)
        future = broadcaster.broadcast_reload()
        assert future.result(timeout=2) == 1
        assert client.messages == [RELOAD_MESSAGE]
    finally:
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        loop.close()
