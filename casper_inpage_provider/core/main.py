"""Entry point that attaches a provider to a wallet runtime and logs its events."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from typing import Any, Dict

from .config import ProviderOptions, env_flag
from .provider import InpageProvider
from .websocket_transport import WebSocketDuplex


LOGGER = logging.getLogger(__name__)


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

_PROVIDER_EVENTS = ("connect", "disconnect", "accountsChanged", "chainChanged", "_initialized")


def _parse_args() -> argparse.Namespace:
    defaults = ProviderOptions.from_env()
    parser = argparse.ArgumentParser(description="Casper in-page provider demo")
    parser.add_argument(
        "--url",
        default=os.environ.get("CASPER_PROVIDER_URL", "ws://127.0.0.1:8765"),
        help="WebSocket URL of the wallet runtime",
    )
    parser.add_argument(
        "--stream-name",
        default=defaults.json_rpc_stream_name,
        help="Name of the JSON-RPC channel on the multiplexed connection",
    )
    parser.add_argument(
        "--max-listeners",
        type=int,
        default=defaults.max_event_listeners,
        help="Listener count per event before a leak warning is logged",
    )
    parser.add_argument(
        "--reject-pending",
        action="store_true",
        default=env_flag("REJECT_PENDING"),
        help="Reject in-flight requests when the transport is lost",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=env_flag("DEBUG"),
        help="Enable debug logging",
    )
    return parser.parse_args()


def _build_options(args: argparse.Namespace) -> ProviderOptions:
    return ProviderOptions(
        max_event_listeners=args.max_listeners,
        should_send_metadata=env_flag("SEND_METADATA", default=True),
        json_rpc_stream_name=args.stream_name,
        reject_pending_on_disconnect=args.reject_pending,
    )


async def _log_events(queue: "asyncio.Queue[Dict[str, Any]]") -> None:
    while True:
        message = await queue.get()
        LOGGER.info("Provider event %s: %s", message["event"], message["data"])
        if message["event"] == "disconnect" and getattr(message["data"], "code", None) == 1011:
            break


async def main() -> None:
    args = _parse_args()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        transport = await WebSocketDuplex.connect(args.url)
    except (OSError, RuntimeError) as exc:
        LOGGER.error("Failed to connect to wallet runtime: %s", exc)
        return

    provider = InpageProvider(transport, _build_options(args))
    queue = provider.events.register_queue("*", maxsize=64, subscriber_id="demo-logger")
    watcher = asyncio.create_task(_log_events(queue))

    await provider.initialize_state()
    LOGGER.info(
        "Provider ready (connected=%s chain=%s address=%s)",
        provider.is_connected(),
        provider.chain_id,
        provider.selected_address,
    )

    try:
        await watcher
    finally:
        provider.events.unregister_queue("*", queue)
        LOGGER.info("Event metrics snapshot: %s", provider.events.metrics_snapshot())
        await transport.close()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
