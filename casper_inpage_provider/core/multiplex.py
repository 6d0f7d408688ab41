"""Split a single duplex connection into named object channels."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Set

from .streams import Duplex


LOGGER = logging.getLogger(__name__)


class Substream(Duplex):
    """One named channel of an :class:`ObjectMultiplex`."""

    def __init__(self, parent: "ObjectMultiplex", name: str) -> None:
        super().__init__()
        self._parent = parent
        self.name = name

    def _write(self, chunk: Any) -> None:
        self._parent.push({"name": self.name, "data": chunk})


class ObjectMultiplex(Duplex):
    """Tag outbound frames with a channel name and route inbound frames by it.

    Frames look like ``{"name": <channel>, "data": <payload>}``. Writing to the
    multiplexer feeds inbound frames; frames read from it are outbound.
    """

    def __init__(self) -> None:
        super().__init__()
        self._substreams: Dict[str, Substream] = {}
        self._ignored: Set[str] = set()

    def create_stream(self, name: str) -> Substream:
        if not isinstance(name, str) or not name:
            raise ValueError("ObjectMultiplex - name must be a non-empty string")
        if name in self._substreams or name in self._ignored:
            raise ValueError(f'ObjectMultiplex - Substream for name "{name}" already exists')

        substream = Substream(self, name)
        self._substreams[name] = substream
        substream.once("close", lambda: self._substreams.pop(name, None))
        return substream

    def ignore_stream(self, name: str) -> None:
        """Discard every frame addressed to ``name``."""

        if name in self._substreams:
            raise ValueError(f'ObjectMultiplex - Substream for name "{name}" already exists')
        self._ignored.add(name)

    def get_stream(self, name: str) -> Optional[Substream]:
        return self._substreams.get(name)

    def _write(self, chunk: Any) -> None:
        if not isinstance(chunk, dict) or "name" not in chunk:
            LOGGER.warning("ObjectMultiplex - malformed chunk without name %r", chunk)
            return

        name = chunk["name"]
        if name in self._ignored:
            return

        substream = self._substreams.get(name)
        if substream is None:
            LOGGER.warning('ObjectMultiplex - orphaned data for stream "%s"', name)
            return

        substream.push(chunk.get("data"))

    def _destroy(self, error: Optional[BaseException]) -> None:
        for substream in list(self._substreams.values()):
            substream.destroy(error)
        self._substreams.clear()
