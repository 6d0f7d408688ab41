"""Synchronous event emitter with optional asyncio queue fan-out."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, Dict, List, Optional, Set


LOGGER = logging.getLogger(__name__)

Listener = Callable[..., Any]


@dataclass
class SubscriberQueue:
    event: str
    subscriber_id: str
    queue: "asyncio.Queue[Dict[str, Any]]"


@dataclass(eq=False)
class _Registration:
    listener: Listener
    once: bool = False


class SafeEventEmitter:
    """Publish/subscribe hub used by the provider and the stream primitives.

    Listeners run synchronously in registration order. A listener raising an
    exception is logged and does not prevent delivery to the remaining
    listeners. Consumers that prefer to await events can register an
    :class:`asyncio.Queue` instead; ``"*"`` subscribes a queue to every event.
    """

    _VALID_OVERFLOW_STRATEGIES = {"drop_new", "drop_oldest"}

    def __init__(
        self,
        *,
        max_listeners: int = 10,
        default_queue_size: int = 0,
        overflow_strategy: str = "drop_new",
    ) -> None:
        if overflow_strategy not in self._VALID_OVERFLOW_STRATEGIES:
            raise ValueError(
                "overflow_strategy must be one of "
                f"{sorted(self._VALID_OVERFLOW_STRATEGIES)}"
            )

        if default_queue_size < 0:
            raise ValueError("default_queue_size must be >= 0")

        self._listeners: DefaultDict[str, List[_Registration]] = defaultdict(list)
        self._queues: DefaultDict[str, List[SubscriberQueue]] = defaultdict(list)
        self._wildcard_key = "*"
        self._max_listeners = 0
        self._warned_events: Set[str] = set()
        self._default_queue_size = default_queue_size
        self._overflow_strategy = overflow_strategy
        self._delivered_counts: Counter[str] = Counter()
        self._dropped_counts: Counter[str] = Counter()
        self._queue_index: Dict[asyncio.Queue, SubscriberQueue] = {}
        self.set_max_listeners(max_listeners)

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------
    def set_max_listeners(self, count: int) -> None:
        """Cap the listeners per event before a leak warning is logged; 0 disables."""

        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise ValueError("max_listeners must be a non-negative integer")
        self._max_listeners = count

    @property
    def max_listeners(self) -> int:
        return self._max_listeners

    def on(self, event_name: str, listener: Listener) -> "SafeEventEmitter":
        self._add(event_name, _Registration(listener))
        return self

    def once(self, event_name: str, listener: Listener) -> "SafeEventEmitter":
        self._add(event_name, _Registration(listener, once=True))
        return self

    def remove_listener(self, event_name: str, listener: Listener) -> "SafeEventEmitter":
        registrations = self._listeners.get(event_name)
        if not registrations:
            return self
        for registration in reversed(registrations):
            if registration.listener == listener:
                registrations.remove(registration)
                break
        if not registrations:
            del self._listeners[event_name]
        return self

    def remove_all_listeners(self, event_name: Optional[str] = None) -> "SafeEventEmitter":
        if event_name is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event_name, None)
        return self

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    def _discard(self, event_name: str, registration: _Registration) -> None:
        registrations = self._listeners.get(event_name)
        if registrations and registration in registrations:
            registrations.remove(registration)
            if not registrations:
                del self._listeners[event_name]

    def _add(self, event_name: str, registration: _Registration) -> None:
        registrations = self._listeners[event_name]
        registrations.append(registration)
        if (
            self._max_listeners
            and len(registrations) > self._max_listeners
            and event_name not in self._warned_events
        ):
            self._warned_events.add(event_name)
            LOGGER.warning(
                "Possible event emitter leak: %d '%s' listeners added (max %d)",
                len(registrations),
                event_name,
                self._max_listeners,
            )

    # ------------------------------------------------------------------
    # Queue subscriptions
    # ------------------------------------------------------------------
    def register_queue(
        self,
        event_name: str,
        *,
        maxsize: Optional[int] = None,
        subscriber_id: str = "anonymous",
    ) -> "asyncio.Queue[Dict[str, Any]]":
        """Register a new queue interested in ``event_name``.

        Consumers may pass ``"*"`` to receive every event.
        """

        size = self._default_queue_size if maxsize is None else max(maxsize, 0)
        queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=size)
        metadata = SubscriberQueue(
            event=event_name, subscriber_id=subscriber_id, queue=queue
        )
        self._queues[event_name].append(metadata)
        self._queue_index[queue] = metadata
        return queue

    def unregister_queue(self, event_name: str, queue: asyncio.Queue) -> None:
        queues = self._queues.get(event_name)
        if not queues:
            return
        for metadata in list(queues):
            if metadata.queue is queue:
                queues.remove(metadata)
                break
        if not queues and event_name in self._queues:
            del self._queues[event_name]
        self._queue_index.pop(queue, None)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------
    def emit(self, event_name: str, *args: Any) -> bool:
        """Invoke every listener of ``event_name``; return whether anyone heard it."""

        registrations = list(self._listeners.get(event_name, ()))
        for registration in registrations:
            if registration.once:
                self._discard(event_name, registration)
            try:
                registration.listener(*args)
            except Exception:
                LOGGER.exception("Listener for '%s' raised", event_name)

        queues = list(self._queues.get(event_name, []))
        if event_name != self._wildcard_key:
            queues.extend(self._queues.get(self._wildcard_key, []))

        if queues:
            data = args[0] if len(args) == 1 else list(args)
            message = {"event": event_name, "data": data}
            for subscriber in queues:
                self._dispatch_to_queue(subscriber, event_name, message)

        return bool(registrations or queues)

    def _dispatch_to_queue(
        self,
        subscriber: SubscriberQueue,
        event_name: str,
        message: Dict[str, Any],
    ) -> None:
        queue = subscriber.queue
        while True:
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                self._dropped_counts[event_name] += 1
                LOGGER.warning(
                    "Queue overflow for event '%s' (subscriber=%s strategy=%s size=%d)",
                    event_name,
                    subscriber.subscriber_id,
                    self._overflow_strategy,
                    queue.maxsize,
                    extra={
                        "event_name": event_name,
                        "subscriber": subscriber.subscriber_id,
                        "strategy": self._overflow_strategy,
                        "queue_size": queue.qsize(),
                    },
                )

                if self._overflow_strategy == "drop_new":
                    return

                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                continue
            else:
                self._delivered_counts[event_name] += 1
                return

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------
    def metrics_snapshot(self) -> Dict[str, Dict[str, int]]:
        """Return a snapshot of delivered and dropped queue counters."""

        return {
            "delivered": dict(self._delivered_counts),
            "dropped": dict(self._dropped_counts),
        }

    def subscriber_snapshot(self) -> List[Dict[str, Any]]:
        """Return current queue occupancy for every subscriber."""

        snapshot: List[Dict[str, Any]] = []
        for metadata in self._queue_index.values():
            queue = metadata.queue
            snapshot.append(
                {
                    "event": metadata.event,
                    "subscriber": metadata.subscriber_id,
                    "size": queue.qsize(),
                    "maxsize": queue.maxsize,
                }
            )
        return snapshot

    def reset_metrics(self) -> None:
        self._delivered_counts.clear()
        self._dropped_counts.clear()
