"""Canonical wire payloads exchanged with the wallet runtime.

Most traffic is plain JSON objects. The dataclasses here give the handful of
payloads the provider interprets a fixed shape, with ``to_payload`` /
``from_payload`` helpers converting to and from the camelCase wire form.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


JSONRPC_VERSION = "2.0"


@dataclass(slots=True)
class ConnectInfo:
    """Argument of the ``connect`` event."""

    chain_id: Optional[str]

    def to_payload(self) -> Dict[str, Any]:
        return {"chainId": self.chain_id}


@dataclass(slots=True)
class WalletProviderState:
    """Result of ``wallet_getProviderState``.

    Values are kept as received; the provider validates them when applying.
    """

    accounts: Any
    chain_id: Any
    is_unlocked: Any

    @classmethod
    def from_payload(cls, payload: Any) -> "WalletProviderState":
        if not isinstance(payload, Mapping):
            raise ValueError(f"provider state must be an object, got {payload!r}")
        return cls(
            accounts=payload.get("accounts"),
            chain_id=payload.get("chainId"),
            is_unlocked=payload.get("isUnlocked"),
        )


def make_request(method: str, params: Any = None, *, request_id: Any = None) -> Dict[str, Any]:
    """Build a JSON-RPC envelope. Without ``request_id`` it is a notification
    until the engine assigns an id."""

    payload: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if request_id is not None:
        payload["id"] = request_id
    if params is not None:
        payload["params"] = params
    return payload


def is_notification(frame: Any) -> bool:
    return isinstance(frame, Mapping) and frame.get("id") is None and "method" in frame
