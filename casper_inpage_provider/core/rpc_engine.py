"""JSON-RPC request pipeline bound to a duplex object stream.

The engine runs every request through an ordered list of async middleware.
Each middleware receives the request and a ``call_next`` coroutine function
and returns the response envelope. The provider assembles three of them:

* :func:`create_id_remap_middleware` swaps the caller's id for one that is
  unique among in-flight requests and restores it on the response.
* :func:`create_error_middleware` turns failures into the structured
  ``{"code", "message", "data"}`` error member.
* :func:`create_stream_middleware` builds a :class:`StreamMiddleware`
  that writes the request onto the RPC channel and resolves it when the
  response with the same id comes back.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from . import messages
from .errors import RpcError, internal_error, invalid_request
from .event_emitter import SafeEventEmitter
from .schemas import is_notification
from .streams import Duplex


LOGGER = logging.getLogger(__name__)

Request = Dict[str, Any]
Response = Dict[str, Any]
NextHandler = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Request, NextHandler], Awaitable[Response]]
ResponseCallback = Callable[[Optional[BaseException], Any], None]

_MAX_ID = 2**53 - 1
_id_counter = itertools.count(random.randint(0, _MAX_ID // 2))


def get_unique_id() -> int:
    return next(_id_counter) % _MAX_ID


class JRPCEngine:
    """Run requests through a stack of middleware."""

    def __init__(self) -> None:
        self._middleware: List[Middleware] = []

    def push(self, middleware: Middleware) -> None:
        self._middleware.append(middleware)

    async def handle(self, request: Union[Request, List[Request]]) -> Union[Response, List[Response]]:
        """Process a request (or a batch) and return the response envelope(s)."""

        if isinstance(request, list):
            if not request:
                return _error_response(None, invalid_request(data=request))
            return [await self._handle_one(entry) for entry in request]
        return await self._handle_one(request)

    def handle_callback(
        self,
        request: Union[Request, List[Request]],
        callback: ResponseCallback,
    ) -> "asyncio.Task[None]":
        """Schedule :meth:`handle` and report ``(error, response)`` to ``callback``."""

        async def _run() -> None:
            response = await self.handle(request)
            error = None
            if isinstance(response, dict) and response.get("error"):
                error = RpcError.from_payload(response["error"])
            callback(error, response)

        return asyncio.get_running_loop().create_task(_run())

    async def _handle_one(self, request: Request) -> Response:
        if not isinstance(request, dict):
            return _error_response(None, invalid_request(data=request))

        chain: NextHandler = _end_of_chain
        for middleware in reversed(self._middleware):
            chain = _bind(middleware, chain)
        response = await chain(dict(request))
        response.setdefault("jsonrpc", "2.0")
        return response


def _bind(middleware: Middleware, call_next: NextHandler) -> NextHandler:
    async def _call(request: Request) -> Response:
        return await middleware(request, call_next)

    return _call


async def _end_of_chain(request: Request) -> Response:
    raise internal_error(
        f"JsonRpcEngine: Response has no error or result for request: {request!r}",
        data=request,
    )


def _error_response(request_id: Any, error: RpcError) -> Response:
    return {"id": request_id, "jsonrpc": "2.0", "error": error.to_dict()}


def create_id_remap_middleware() -> Middleware:
    async def _id_remap(request: Request, call_next: NextHandler) -> Response:
        original_id = request.get("id")
        request["id"] = get_unique_id()
        response = await call_next(request)
        response["id"] = original_id
        return response

    return _id_remap


def create_error_middleware() -> Middleware:
    async def _errors(request: Request, call_next: NextHandler) -> Response:
        method = request.get("method")
        if not isinstance(method, str) or not method:
            return _error_response(
                request.get("id"),
                invalid_request(messages.errors.invalid_request_method_value(), data=request),
            )

        try:
            response = await call_next(request)
        except RpcError as exc:
            response = _error_response(request.get("id"), exc)
        except Exception as exc:
            LOGGER.exception("Unhandled failure while processing '%s'", method)
            response = _error_response(
                request.get("id"), internal_error(str(exc) or None, data=request)
            )

        error = response.get("error")
        if error:
            LOGGER.error(
                "Casper - RPC Error: %s",
                error.get("message") if isinstance(error, dict) else error,
                extra={"rpc_method": method, "rpc_error": error},
            )
        return response

    return _errors


class _RpcStream(Duplex):
    """Channel endpoint owned by :class:`StreamMiddleware`.

    Writes are inbound frames from the remote side; pushes are outbound
    requests.
    """

    def __init__(self, on_frame: Callable[[Any], None]) -> None:
        super().__init__()
        self._on_frame = on_frame

    def _write(self, chunk: Any) -> None:
        self._on_frame(chunk)


class StreamMiddleware:
    """Forward requests over :attr:`stream` and correlate the responses.

    Frames arriving without an ``id`` but with a ``method`` are
    notifications and are re-emitted as ``notification`` on :attr:`events`.
    Inbound requests (``id`` and ``method``) and responses whose id is not
    pending are dropped.
    """

    def __init__(self) -> None:
        self.events = SafeEventEmitter(max_listeners=0)
        self.stream: Duplex = _RpcStream(self._process_frame)
        self._pending: Dict[Any, "asyncio.Future[Response]"] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def middleware(self, request: Request, call_next: NextHandler) -> Response:
        future: "asyncio.Future[Response]" = asyncio.get_running_loop().create_future()
        request_id = request.get("id")
        self._pending[request_id] = future
        if not self.stream.push(request):
            self._pending.pop(request_id, None)
            raise internal_error(messages.errors.permanently_disconnected(), data=request)
        return await future

    def reject_pending(self, error: RpcError) -> int:
        """Settle every in-flight request with ``error``; return how many there were."""

        pending, self._pending = self._pending, {}
        for request_id, future in pending.items():
            if not future.done():
                future.set_result(_error_response(request_id, error))
        return len(pending)

    def _process_frame(self, frame: Any) -> None:
        if not isinstance(frame, dict):
            LOGGER.warning("StreamMiddleware - ignoring non-object frame %r", frame)
            return

        if is_notification(frame):
            self.events.emit("notification", frame)
            return

        if frame.get("id") is None:
            LOGGER.debug("StreamMiddleware - dropping frame without id %r", frame)
            return

        # requests from the remote side are not responses
        if "method" in frame:
            LOGGER.debug("StreamMiddleware - dropping inbound request %r", frame)
            return

        future = self._pending.pop(frame["id"], None)
        if future is None:
            LOGGER.warning(
                'StreamMiddleware - Unknown response id "%s"', frame["id"]
            )
            return

        if not future.done():
            future.set_result(dict(frame))


def create_stream_middleware() -> StreamMiddleware:
    """Return a fresh :class:`StreamMiddleware`; pump its ``stream`` into a channel."""

    return StreamMiddleware()
