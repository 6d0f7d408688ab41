"""Issue a single JSON-RPC request through the in-page provider."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from typing import Any, Dict

from casper_inpage_provider.core.errors import RpcError
from casper_inpage_provider.core.provider import InpageProvider
from casper_inpage_provider.core.websocket_transport import WebSocketDuplex
from casper_inpage_provider.core.window_handle import EngineWindowHandle

LOGGER = logging.getLogger("casper_inpage_provider.cli.request")


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--url",
        default=os.environ.get("CASPER_PROVIDER_URL", "ws://127.0.0.1:8765"),
        help="WebSocket URL of the wallet runtime",
    )
    parser.add_argument(
        "--method",
        default="wallet_getProviderState",
        help="RPC method to call",
    )
    parser.add_argument(
        "--params",
        default=None,
        help="JSON encoded params (array or object)",
    )
    parser.add_argument(
        "--stream-name",
        default=os.environ.get("CASPER_PROVIDER_STREAM_NAME", "provider"),
        help="Name of the JSON-RPC channel",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for the response",
    )
    return parser


def _build_args(method: str, raw_params: Any) -> Dict[str, Any]:
    args: Dict[str, Any] = {"method": method}
    if raw_params is not None:
        args["params"] = json.loads(raw_params)
    return args


async def _call(url: str, stream_name: str, request_args: Dict[str, Any], timeout: float) -> Any:
    transport = await WebSocketDuplex.connect(url, timeout=timeout)
    try:
        provider = InpageProvider(transport, {"jsonRpcStreamName": stream_name})
        # no window runtime here, route everything over the RPC channel
        provider.set_window_handle(EngineWindowHandle(provider.rpc_engine))
        return await asyncio.wait_for(provider.request(request_args), timeout=timeout)
    finally:
        await transport.close()


def main() -> None:
    parser = _build_argument_parser()
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)

    try:
        request_args = _build_args(args.method, args.params)
    except json.JSONDecodeError as exc:
        parser.error(f"--params must be valid JSON: {exc}")

    try:
        payload = asyncio.run(_call(args.url, args.stream_name, request_args, args.timeout))
    except RpcError as exc:
        print(json.dumps({"error": exc.to_dict()}, indent=2, sort_keys=True))
        raise SystemExit(1) from exc
    print(json.dumps(payload, indent=2, sort_keys=True))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
