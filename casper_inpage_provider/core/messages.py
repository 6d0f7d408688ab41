"""User-facing message strings."""

from __future__ import annotations

from types import SimpleNamespace


def _connected(chain_id: str) -> str:
    return f'Casper: Connected to chain with ID "{chain_id}".'


def _lost_connection(label: str) -> str:
    return f'Casper: Lost connection to "{label}".'


errors = SimpleNamespace(
    disconnected=lambda: "Casper: Lost connection to Casper.",
    permanently_disconnected=lambda: (
        "Casper: Disconnected from Casper background. Page reload required."
    ),
    invalid_duplex_stream=lambda: "Must provide a duplex object stream.",
    invalid_request=lambda: "Invalid request.",
    invalid_request_args=lambda: "Expected a single, non-array, object argument.",
    invalid_request_method=lambda: "'args.method' must be a non-empty string.",
    invalid_request_params=lambda: "'args.params' must be an object or array if provided.",
    invalid_request_method_value=lambda: "The request 'method' must be a non-empty string.",
    internal=lambda: "Internal JSON-RPC error.",
    unknown_error=lambda: "Unknown RPC error.",
    missing_window_handle=lambda: "Casper: No window handle attached to deliver the request.",
    lost_connection=_lost_connection,
)

info = SimpleNamespace(
    connected=_connected,
)
