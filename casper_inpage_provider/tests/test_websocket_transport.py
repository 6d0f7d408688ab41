import asyncio
import json

from casper_inpage_provider.core.errors import CLOSE_INTERNAL_ERROR
from casper_inpage_provider.core.provider import InpageProvider
from casper_inpage_provider.core.websocket_transport import WebSocketDuplex


class _DummyWebSocket:
    def __init__(self) -> None:
        self.sent = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    def feed(self, raw) -> None:
        self._incoming.put_nowait(raw)

    def hang_up(self) -> None:
        self._incoming.put_nowait(None)

    async def send(self, message) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True
        self.hang_up()

    def __aiter__(self):
        return self

    async def __anext__(self):
        raw = await self._incoming.get()
        if raw is None:
            raise StopAsyncIteration
        return raw


class _WalletSocket(_DummyWebSocket):
    """Answers every provider request with a fixed provider state."""

    state = {"accounts": ["a1"], "chainId": "0x1", "isUnlocked": True}

    async def send(self, message) -> None:
        await super().send(message)
        frame = json.loads(message)
        request = frame["data"]
        self.feed(json.dumps({"name": frame["name"], "data": {"id": request["id"], "result": self.state}}))


def test_frames_are_encoded_and_decoded() -> None:
    asyncio.run(_test_frames_are_encoded_and_decoded())


async def _test_frames_are_encoded_and_decoded() -> None:
    websocket = _DummyWebSocket()
    transport = WebSocketDuplex(websocket)
    received = []
    closed = []
    transport.on("data", received.append)
    transport.on("close", lambda: closed.append(True))

    transport.write({"name": "provider", "data": {"id": 1}})
    websocket.feed(json.dumps({"name": "provider", "data": {"id": 1, "result": True}}))
    websocket.feed("not json")
    await asyncio.sleep(0.01)

    assert websocket.sent == [json.dumps({"name": "provider", "data": {"id": 1}})]
    assert received == [{"name": "provider", "data": {"id": 1, "result": True}}]

    websocket.hang_up()
    await asyncio.sleep(0.01)

    assert transport.destroyed
    assert closed == [True]

    await asyncio.wait_for(transport.close(), timeout=1)
    assert websocket.closed


def test_provider_runs_over_websocket_transport() -> None:
    asyncio.run(_test_provider_runs_over_websocket_transport())


async def _test_provider_runs_over_websocket_transport() -> None:
    websocket = _WalletSocket()
    transport = WebSocketDuplex(websocket)
    provider = InpageProvider(transport)
    disconnects = []
    provider.on("disconnect", disconnects.append)

    await asyncio.wait_for(provider.initialize_state(), timeout=1)

    assert provider.is_connected() is True
    assert provider.chain_id == "0x1"
    assert provider.selected_address == "a1"

    websocket.hang_up()
    await asyncio.sleep(0.01)

    assert [error.code for error in disconnects] == [CLOSE_INTERNAL_ERROR]
    assert provider.is_connected() is False

    await asyncio.wait_for(transport.close(), timeout=1)


def test_local_destroy_flushes_and_closes_the_socket() -> None:
    asyncio.run(_test_local_destroy_flushes_and_closes_the_socket())


async def _test_local_destroy_flushes_and_closes_the_socket() -> None:
    websocket = _DummyWebSocket()
    transport = WebSocketDuplex(websocket)

    transport.write({"name": "provider", "data": {"id": 2}})
    transport.destroy()
    await asyncio.sleep(0.01)

    assert websocket.sent == [json.dumps({"name": "provider", "data": {"id": 2}})]
    assert websocket.closed is True

    await asyncio.wait_for(transport.close(), timeout=1)
