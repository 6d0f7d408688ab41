"""Duplex object stream over a WebSocket connection carrying JSON frames."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

try:  # pragma: no cover - optional dependency guard
    import websockets
except ImportError:  # pragma: no cover - optional dependency guard
    websockets = None

from .streams import Duplex


LOGGER = logging.getLogger(__name__)


class WebSocketDuplex(Duplex):
    """Bridge a connected WebSocket into a :class:`Duplex`.

    Outbound chunks are queued and sent in write order by a sender task.
    Inbound text frames are decoded and pushed. When the socket closes or
    either task fails the stream is destroyed, which callers observe as a
    transport-level disconnect.
    """

    def __init__(self, websocket: Any, *, queue_maxsize: int = 0) -> None:
        super().__init__()
        self._websocket = websocket
        self._outbox: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=queue_maxsize)
        loop = asyncio.get_running_loop()
        self._sender_task = loop.create_task(self._sender())
        self._receiver_task = loop.create_task(self._receiver())
        self._close_task: Optional["asyncio.Task[None]"] = None

    @classmethod
    async def connect(cls, uri: str, *, timeout: float = 10.0, **kwargs: Any) -> "WebSocketDuplex":
        if websockets is None:
            raise RuntimeError(
                "The 'websockets' package is required to open a WebSocket transport."
            )

        LOGGER.info("Connecting to wallet runtime at %s", uri)
        websocket = await websockets.connect(uri, open_timeout=timeout, **kwargs)
        return cls(websocket)

    def _write(self, chunk: Any) -> None:
        try:
            encoded = json.dumps(chunk)
        except (TypeError, ValueError):
            LOGGER.error("Dropping chunk that is not JSON serialisable: %r", chunk)
            return

        try:
            self._outbox.put_nowait(encoded)
        except asyncio.QueueFull:
            LOGGER.warning("WebSocket outbox full, dropping chunk (size=%d)", self._outbox.maxsize)

    async def _sender(self) -> None:
        while True:
            message = await self._outbox.get()
            if message is None:
                break
            try:
                await self._websocket.send(message)
            except Exception as exc:
                LOGGER.warning("Failed to send frame to wallet runtime", exc_info=True)
                self.destroy(exc)
                break

    async def _receiver(self) -> None:
        error: Optional[BaseException] = None
        try:
            async for raw in self._websocket:
                try:
                    frame = json.loads(raw)
                except (TypeError, ValueError):
                    LOGGER.warning("Ignoring non-JSON frame from wallet runtime: %r", raw)
                    continue
                self.push(frame)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.debug("WebSocket receiver stopped", exc_info=True)
            error = exc
        self.destroy(error)

    def _destroy(self, error: Optional[BaseException]) -> None:
        try:
            self._outbox.put_nowait(None)
        except asyncio.QueueFull:
            self._sender_task.cancel()
        if asyncio.current_task() is not self._receiver_task:
            self._receiver_task.cancel()
        self._close_task = asyncio.get_running_loop().create_task(self._close_socket())

    async def _close_socket(self) -> None:
        # frames written before teardown still go out
        await asyncio.gather(self._sender_task, return_exceptions=True)
        try:
            await self._websocket.close()
        except Exception:
            LOGGER.debug("WebSocket close failed", exc_info=True)

    async def close(self) -> None:
        """Close the socket and wait for the background tasks to finish."""

        self.destroy()
        tasks = [self._sender_task, self._receiver_task]
        if self._close_task is not None:
            tasks.append(self._close_task)
        await asyncio.gather(*tasks, return_exceptions=True)
