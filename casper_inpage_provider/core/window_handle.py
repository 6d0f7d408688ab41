"""Delivery seam for requests answered outside the local RPC engine."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, runtime_checkable

from . import messages
from .errors import RpcError, internal_error

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .rpc_engine import JRPCEngine


LOGGER = logging.getLogger(__name__)

TryWindowHandle = Callable[[Any, Callable[..., None]], None]


@runtime_checkable
class WindowHandle(Protocol):
    """Capability that delivers a request envelope and returns its response."""

    async def deliver(self, request: Any) -> Any:
        ...


class CallbackWindowHandle:
    """Adapt a ``try_window_handle(payload, callback)`` function.

    The callback follows the ``(error, response)`` convention; an error
    argument fails the delivery, anything else resolves it with the response.
    """

    def __init__(self, try_window_handle: TryWindowHandle) -> None:
        if not callable(try_window_handle):
            raise TypeError("try_window_handle must be callable")
        self._try_window_handle = try_window_handle

    async def deliver(self, request: Any) -> Any:
        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()

        def _callback(error: Any = None, response: Any = None) -> None:
            if future.done():
                LOGGER.debug("Ignoring repeated window handle callback")
                return
            if error is not None:
                future.set_exception(RpcError.from_payload(error))
            else:
                future.set_result(response)

        self._try_window_handle(request, _callback)
        return await future


class EngineWindowHandle:
    """Deliver requests through an :class:`JRPCEngine`, i.e. over the RPC channel."""

    def __init__(self, engine: "JRPCEngine") -> None:
        self._engine = engine

    async def deliver(self, request: Any) -> Any:
        return await self._engine.handle(request)


class MissingWindowHandle:
    """Placeholder used until the integration attaches a real handle."""

    async def deliver(self, request: Any) -> Any:
        raise internal_error(messages.errors.missing_window_handle(), data=request)


def as_window_handle(handle: Optional[Any]) -> WindowHandle:
    if handle is None:
        return MissingWindowHandle()
    if isinstance(handle, WindowHandle):
        return handle
    if callable(handle):
        return CallbackWindowHandle(handle)
    raise TypeError(
        "window_handle must provide an async deliver() or be a try_window_handle callable"
    )
