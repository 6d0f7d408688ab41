"""Minimal duplex object streams and the ``pump`` helper that wires them."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Tuple

from .event_emitter import Listener, SafeEventEmitter


LOGGER = logging.getLogger(__name__)

PumpCallback = Callable[[Optional[BaseException]], None]


class Duplex:
    """Object stream that can be written to and read from independently.

    ``write`` hands a chunk to the stream's sink (:meth:`_write`), ``push``
    makes a chunk readable, which is delivered to every ``data`` listener.
    ``destroy`` tears the stream down, emitting ``error`` (when given) and
    then ``close`` exactly once.
    """

    def __init__(self) -> None:
        self._events = SafeEventEmitter(max_listeners=0)
        self.destroyed = False

    def on(self, event_name: str, listener: Listener) -> "Duplex":
        self._events.on(event_name, listener)
        return self

    def once(self, event_name: str, listener: Listener) -> "Duplex":
        self._events.once(event_name, listener)
        return self

    def remove_listener(self, event_name: str, listener: Listener) -> "Duplex":
        self._events.remove_listener(event_name, listener)
        return self

    def write(self, chunk: Any) -> bool:
        if self.destroyed:
            LOGGER.debug("Dropping write to destroyed %s", type(self).__name__)
            return False
        self._write(chunk)
        return True

    def push(self, chunk: Any) -> bool:
        if self.destroyed:
            return False
        self._events.emit("data", chunk)
        return True

    def end(self) -> None:
        self.destroy()

    def destroy(self, error: Optional[BaseException] = None) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self._destroy(error)
        if error is not None:
            self._events.emit("error", error)
        self._events.emit("close")

    def _write(self, chunk: Any) -> None:
        raise NotImplementedError

    def _destroy(self, error: Optional[BaseException]) -> None:
        """Hook for subclasses releasing resources on teardown."""


class _PairEndpoint(Duplex):
    def __init__(self) -> None:
        super().__init__()
        self.peer: Optional["_PairEndpoint"] = None

    def _write(self, chunk: Any) -> None:
        if self.peer is not None:
            self.peer.push(chunk)

    def _destroy(self, error: Optional[BaseException]) -> None:
        if self.peer is not None:
            self.peer.destroy()


def duplex_pair() -> Tuple[Duplex, Duplex]:
    """Return two connected in-memory endpoints; writes on one are read on the other."""

    left, right = _PairEndpoint(), _PairEndpoint()
    left.peer, right.peer = right, left
    return left, right


def is_duplex_stream(candidate: Any) -> bool:
    if isinstance(candidate, Duplex):
        return True
    return all(
        callable(getattr(candidate, attr, None))
        for attr in ("write", "push", "on", "destroy")
    )


def pump(*streams: Any, callback: Optional[PumpCallback] = None) -> None:
    """Pipe ``streams`` left to right and watch them for failure.

    Data read from each stream is written to the next one. When any stream
    errors or closes, every stream in the chain is destroyed and ``callback``
    is invoked once with the error (or ``None`` for a clean close).
    """

    if len(streams) < 2:
        raise ValueError("pump requires at least two streams")

    finished = False

    def _finish(error: Optional[BaseException] = None) -> None:
        nonlocal finished
        if finished:
            return
        finished = True
        for stream in streams:
            stream.destroy()
        if callback is not None:
            callback(error)

    for source, destination in zip(streams, streams[1:]):
        source.on("data", destination.write)

    seen = set()
    for stream in streams:
        if id(stream) in seen:
            continue
        seen.add(id(stream))
        stream.on("error", _finish)
        stream.on("close", _finish)
