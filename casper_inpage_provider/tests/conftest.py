"""Test configuration for the Casper in-page provider."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from casper_inpage_provider.core.provider import InpageProvider
from casper_inpage_provider.core.schemas import make_request
from casper_inpage_provider.core.streams import Duplex, duplex_pair


class FakeWalletRuntime:
    """Far end of the provider connection answering JSON-RPC requests.

    ``results`` / ``errors`` map method names to canned replies. With
    ``auto_respond`` disabled requests are only recorded.
    """

    def __init__(self, endpoint: Duplex, *, stream_name: str = "provider") -> None:
        self.endpoint = endpoint
        self.stream_name = stream_name
        self.frames: List[Dict[str, Any]] = []
        self.requests: List[Dict[str, Any]] = []
        self.results: Dict[str, Any] = {}
        self.errors: Dict[str, Dict[str, Any]] = {}
        self.auto_respond = True
        endpoint.on("data", self._on_frame)

    def _on_frame(self, frame: Dict[str, Any]) -> None:
        self.frames.append(frame)
        if frame.get("name") != self.stream_name:
            return

        request = frame["data"]
        self.requests.append(request)
        if not self.auto_respond:
            return

        method = request.get("method")
        if method in self.errors:
            self.respond(request["id"], error=self.errors[method])
        elif method in self.results:
            self.respond(request["id"], result=self.results[method])

    def respond(self, request_id: Any, *, result: Any = None, error: Optional[Dict[str, Any]] = None) -> None:
        payload: Dict[str, Any] = {"id": request_id, "jsonrpc": "2.0"}
        if error is not None:
            payload["error"] = error
        else:
            payload["result"] = result
        self.send(self.stream_name, payload)

    def notify(self, method: str, params: Any) -> None:
        self.send(self.stream_name, make_request(method, params))

    def send(self, channel: str, data: Any) -> None:
        self.endpoint.write({"name": channel, "data": data})


ProviderFactory = Callable[..., Tuple[InpageProvider, FakeWalletRuntime]]


@pytest.fixture
def make_provider() -> ProviderFactory:
    def _factory(
        options: Any = None,
        *,
        window_handle: Any = None,
        stream_name: str = "provider",
    ) -> Tuple[InpageProvider, FakeWalletRuntime]:
        local, remote = duplex_pair()
        wallet = FakeWalletRuntime(remote, stream_name=stream_name)
        provider = InpageProvider(local, options, window_handle=window_handle)
        return provider, wallet

    return _factory


@pytest.fixture
def recorder() -> Callable[[InpageProvider], List[Tuple[str, Tuple[Any, ...]]]]:
    """Attach listeners for every public provider event and collect calls in order."""

    def _attach(provider: InpageProvider) -> List[Tuple[str, Tuple[Any, ...]]]:
        events: List[Tuple[str, Tuple[Any, ...]]] = []
        for name in ("connect", "disconnect", "accountsChanged", "chainChanged", "_initialized"):
            provider.on(name, lambda *args, _name=name: events.append((_name, args)))
        return events

    return _attach
