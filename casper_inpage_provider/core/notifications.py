"""Dispatch server-pushed notifications to provider handlers."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping


LOGGER = logging.getLogger(__name__)

NotificationHandler = Callable[[Any], None]


class NotificationRouter:
    """Map notification method names to handlers; unknown methods are ignored."""

    def __init__(self, handlers: Mapping[str, NotificationHandler]) -> None:
        self._handlers: Dict[str, NotificationHandler] = dict(handlers)

    def route(self, payload: Mapping[str, Any]) -> bool:
        method = payload.get("method")
        handler = self._handlers.get(method) if isinstance(method, str) else None
        if handler is None:
            LOGGER.debug("Ignoring notification '%s'", method)
            return False

        handler(payload.get("params"))
        return True
