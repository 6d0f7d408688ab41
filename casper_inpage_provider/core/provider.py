"""In-page JSON-RPC provider bridging callers to a remote Casper wallet runtime.

The provider owns a single duplex connection which it multiplexes into named
channels. JSON-RPC traffic flows over one channel through a small request
engine; the ``phishing`` channel is ignored. Server-pushed notifications
on the RPC channel drive an EIP-1193 style state machine that emits
``connect``, ``disconnect``, ``accountsChanged`` and ``chainChanged``.

Requests that the local engine does not answer are handed to a
:class:`~casper_inpage_provider.core.window_handle.WindowHandle` supplied by
the integration.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from . import messages
from .config import ProviderOptions
from .errors import (
    ProviderConstructionError,
    RpcError,
    disconnect_error,
    internal_error,
    invalid_request,
)
from .event_emitter import Listener, SafeEventEmitter
from .multiplex import ObjectMultiplex
from .notifications import NotificationRouter
from .rpc_engine import (
    JRPCEngine,
    create_error_middleware,
    create_id_remap_middleware,
    create_stream_middleware,
)
from .schemas import JSONRPC_VERSION, ConnectInfo, WalletProviderState, make_request
from .state import ProviderState
from .streams import is_duplex_stream, pump
from .window_handle import WindowHandle, as_window_handle


LOGGER = logging.getLogger(__name__)

ResponseCallback = Callable[[Optional[BaseException], Any], None]
RequestHandler = Callable[[Dict[str, Any], bool], Awaitable[Any]]

PHISHING_STREAM = "phishing"
LOADING_CHAIN_ID = "loading"

_MISSING = object()


class InpageProvider:
    """EIP-1193 style provider speaking to the wallet over a duplex stream."""

    def __init__(
        self,
        connection_stream: Any,
        options: Union[ProviderOptions, Mapping[str, Any], None] = None,
        *,
        window_handle: Any = None,
        **overrides: Any,
    ) -> None:
        if not is_duplex_stream(connection_stream):
            raise ProviderConstructionError(messages.errors.invalid_duplex_stream())

        if isinstance(options, ProviderOptions):
            self._options = options
        else:
            self._options = ProviderOptions.from_mapping(options)
        if overrides:
            self._options = self._options.merged(overrides)

        self._events = SafeEventEmitter(max_listeners=self._options.max_event_listeners)
        self._state = ProviderState()
        self._initializing = False
        self._window_handle: WindowHandle = as_window_handle(window_handle)
        self.should_send_metadata = self._options.should_send_metadata

        # setup connection stream multiplexing
        mux = ObjectMultiplex()
        pump(
            connection_stream,
            mux,
            connection_stream,
            callback=partial(self._handle_stream_disconnect, "Casper"),
        )

        # phishing warnings are handled by another collaborator
        mux.ignore_stream(PHISHING_STREAM)

        self._json_rpc_connection = create_stream_middleware()
        pump(
            self._json_rpc_connection.stream,
            mux.create_stream(self._options.json_rpc_stream_name),
            self._json_rpc_connection.stream,
            callback=partial(self._handle_stream_disconnect, "Casper RpcProvider"),
        )

        engine = JRPCEngine()
        engine.push(create_id_remap_middleware())
        engine.push(create_error_middleware())
        engine.push(self._json_rpc_connection.middleware)
        self._rpc_engine = engine

        self._request_handlers: Dict[str, RequestHandler] = {
            "wallet_getProviderState": self._request_via_engine,
            "casper_accounts": self._request_accounts,
            "casper_requestAccounts": self._request_accounts,
        }

        self._notifications = NotificationRouter(
            {
                "wallet_accountsChanged": self._handle_accounts_changed,
                "wallet_unlockStateChanged": self._handle_unlock_state_changed,
                "wallet_chainChanged": self._handle_chain_changed,
            }
        )
        self._json_rpc_connection.events.on("notification", self._notifications.route)

    # ------------------------------------------------------------------
    # Public attributes
    # ------------------------------------------------------------------
    @property
    def is_torus(self) -> bool:
        return True

    @property
    def chain_id(self) -> Optional[str]:
        """ID of the currently connected Casper chain."""

        return self._state.chain_id

    @property
    def selected_address(self) -> Optional[str]:
        """The user's currently selected address.

        ``None`` when the wallet is locked or no address has been exposed.
        """

        return self._state.selected_address

    @property
    def state(self) -> ProviderState:
        """Snapshot of the provider state; replaced, never mutated, on change."""

        return self._state

    @property
    def options(self) -> ProviderOptions:
        return self._options

    @property
    def events(self) -> SafeEventEmitter:
        return self._events

    @property
    def rpc_engine(self) -> JRPCEngine:
        return self._rpc_engine

    def set_window_handle(self, window_handle: Any) -> None:
        """Attach the handle used for requests the local engine does not answer."""

        self._window_handle = as_window_handle(window_handle)

    # ------------------------------------------------------------------
    # Event subscription
    # ------------------------------------------------------------------
    def on(self, event_name: str, listener: Listener) -> "InpageProvider":
        self._events.on(event_name, listener)
        return self

    def once(self, event_name: str, listener: Listener) -> "InpageProvider":
        self._events.once(event_name, listener)
        return self

    def remove_listener(self, event_name: str, listener: Listener) -> "InpageProvider":
        self._events.remove_listener(event_name, listener)
        return self

    def remove_all_listeners(self, event_name: Optional[str] = None) -> "InpageProvider":
        self._events.remove_all_listeners(event_name)
        return self

    def listener_count(self, event_name: str) -> int:
        return self._events.listener_count(event_name)

    # ------------------------------------------------------------------
    # Public request API
    # ------------------------------------------------------------------
    def is_connected(self) -> bool:
        return self._state.is_connected

    def request(self, args: Any) -> "asyncio.Future[Any]":
        """Submit an RPC request for ``args["method"]`` with ``args["params"]``.

        Arguments are validated immediately; an invalid request raises
        :class:`RpcError` before anything is sent. Valid requests are
        scheduled on the running loop at once, so they reach the wire in
        call order whether or not the caller awaits them. The returned
        future resolves with the ``result`` of the response (the whole
        response for batches) and raises the response ``error`` as
        :class:`RpcError`.
        """

        if not isinstance(args, Mapping):
            raise invalid_request(messages.errors.invalid_request_args(), data=args)

        method = args.get("method")
        if not isinstance(method, str) or not method:
            raise invalid_request(messages.errors.invalid_request_method(), data=args)

        params = args.get("params", _MISSING)
        if params is not _MISSING and not isinstance(params, (list, tuple, Mapping)):
            raise invalid_request(messages.errors.invalid_request_params(), data=args)

        if params is _MISSING:
            payload = make_request(method)
        else:
            payload = make_request(method, list(params) if isinstance(params, tuple) else params)
        return asyncio.get_running_loop().create_task(self._request(payload))

    def send_async(self, payload: Any, callback: ResponseCallback) -> "asyncio.Task[None]":
        """Submit a raw JSON-RPC payload and report ``(error, response)`` to ``callback``."""

        async def _run() -> None:
            try:
                response = await self._rpc_request(payload)
            except Exception as exc:
                _invoke(exc, None)
                return

            error = response.get("error") if isinstance(response, Mapping) else None
            _invoke(RpcError.from_payload(error) if error else None, response)

        def _invoke(error: Optional[BaseException], response: Any) -> None:
            try:
                callback(error, response)
            except Exception:
                LOGGER.exception("send_async callback raised")

        return asyncio.get_running_loop().create_task(_run())

    async def enable(self) -> List[str]:
        """Legacy shortcut for ``casper_requestAccounts``."""

        return await self.request({"method": "casper_requestAccounts"})

    async def _request(self, payload: Dict[str, Any]) -> Any:
        response = await self._rpc_request(payload)
        if isinstance(response, list):
            return response
        if not isinstance(response, Mapping):
            raise internal_error(data=response)
        error = response.get("error")
        if error:
            raise RpcError.from_payload(error)
        return response.get("result")

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------
    async def initialize_state(self) -> None:
        """Populate the initial state via ``wallet_getProviderState``.

        Emits ``connect`` followed by the chain, unlock and accounts updates.
        Failures are logged, never raised; ``_initialized`` is emitted once
        whatever the outcome.
        """

        if self._state.initialized or self._initializing:
            LOGGER.debug("Provider state already initialized")
            return

        self._initializing = True
        try:
            result = await self.request({"method": "wallet_getProviderState"})
            provider_state = WalletProviderState.from_payload(result)

            # indicate that we've connected, for EIP-1193 compliance
            self._set_state(is_connected=True)
            self._events.emit("connect", ConnectInfo(provider_state.chain_id).to_payload())

            self._handle_chain_changed({"chainId": provider_state.chain_id})
            self._handle_unlock_state_changed(
                {"accounts": provider_state.accounts, "isUnlocked": provider_state.is_unlocked}
            )
            self._handle_accounts_changed(provider_state.accounts)
        except Exception:
            LOGGER.error(
                "Casper: Failed to get initial state. Please report this bug.",
                exc_info=True,
            )
        finally:
            LOGGER.info("initialized state")
            self._initializing = False
            self._set_state(initialized=True)
            self._events.emit("_initialized")

    # ------------------------------------------------------------------
    # Request routing
    # ------------------------------------------------------------------
    async def _rpc_request(self, payload: Any, *, is_internal: bool = False) -> Any:
        if not isinstance(payload, Mapping):
            return await self._window_handle.deliver(payload)

        request = dict(payload)
        if not request.get("jsonrpc"):
            request["jsonrpc"] = JSONRPC_VERSION

        method = request.get("method")
        handler = self._request_handlers.get(method) if isinstance(method, str) else None
        if handler is None:
            return await self._window_handle.deliver(request)
        return await handler(request, is_internal)

    async def _request_via_engine(self, request: Dict[str, Any], is_internal: bool) -> Any:
        return await self._rpc_engine.handle(request)

    async def _request_accounts(self, request: Dict[str, Any], is_internal: bool) -> Any:
        response = await self._window_handle.deliver(request)
        result = response.get("result") if isinstance(response, Mapping) else None
        self._handle_accounts_changed(
            result or [],
            is_casper_accounts=request["method"] == "casper_accounts",
            is_internal=is_internal,
        )
        return response

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def _set_state(self, **changes: Any) -> None:
        self._state = self._state.evolve(**changes)

    def _handle_connect(self, chain_id: str) -> None:
        """Mark the provider connected and emit ``connect``. Idempotent."""

        if self._state.is_permanently_disconnected:
            LOGGER.debug("Ignoring connect to %s after permanent disconnect", chain_id)
            return

        if not self._state.is_connected:
            self._set_state(is_connected=True)
            self._events.emit("connect", ConnectInfo(chain_id).to_payload())
            LOGGER.debug(messages.info.connected(chain_id))

    def _handle_disconnect(self, is_recoverable: bool, error_message: Optional[str] = None) -> None:
        """Mark the provider disconnected and emit ``disconnect``.

        Error codes follow the CloseEvent status codes required by EIP-1193:
        1013 for a recoverable loss, 1011 for a permanent one. A permanent
        disconnect clears identity and account state and is terminal.
        """

        state = self._state
        if not (state.is_connected or (not state.is_permanently_disconnected and not is_recoverable)):
            return

        error = disconnect_error(is_recoverable, error_message)
        if is_recoverable:
            LOGGER.debug("%s", error)
            self._set_state(is_connected=False)
        else:
            LOGGER.error("%s", error)
            self._set_state(
                is_connected=False,
                chain_id=None,
                accounts=None,
                selected_address=None,
                is_unlocked=False,
                is_permanently_disconnected=True,
            )
            if self._options.reject_pending_on_disconnect:
                rejected = self._json_rpc_connection.reject_pending(error)
                if rejected:
                    LOGGER.debug("Rejected %d pending request(s) on disconnect", rejected)

        self._events.emit("disconnect", error)

    def _handle_stream_disconnect(self, stream_name: str, error: Optional[BaseException]) -> None:
        self._log_stream_disconnect_warning(stream_name, error)
        self._handle_disconnect(False, str(error) if error else None)

    def _log_stream_disconnect_warning(self, remote_label: str, error: Optional[BaseException]) -> None:
        warning = messages.errors.lost_connection(remote_label)
        LOGGER.warning(warning, exc_info=error)
        if self._events.listener_count("error") > 0:
            self._events.emit("error", warning)

    def _handle_accounts_changed(
        self,
        accounts: Any,
        is_casper_accounts: bool = False,
        is_internal: bool = False,
    ) -> None:
        final_accounts = accounts
        if not isinstance(accounts, (list, tuple)):
            LOGGER.error(
                "Casper: Received non-array accounts parameter. Please report this bug. %r",
                accounts,
            )
            final_accounts = []
        else:
            for account in accounts:
                if not isinstance(account, str):
                    LOGGER.error(
                        "Casper: Received non-string account. Please report this bug. %r",
                        accounts,
                    )
                    final_accounts = []
                    break

        candidate = tuple(final_accounts)
        selected = candidate[0] if candidate else None

        if not self._state.same_accounts(candidate):
            # accounts are known before casper_accounts returns unless the call is internal
            if is_casper_accounts and self._state.accounts and not is_internal:
                LOGGER.warning(
                    'Casper: "casper_accounts" unexpectedly updated accounts. Please report this bug. %r',
                    list(candidate),
                )
            self._set_state(accounts=candidate, selected_address=selected)
            self._events.emit("accountsChanged", list(candidate))
        elif self._state.selected_address != selected:
            self._set_state(selected_address=selected)

    def _handle_chain_changed(self, params: Any = None) -> None:
        chain_id = params.get("chainId") if isinstance(params, Mapping) else None
        if not chain_id or not isinstance(chain_id, str):
            LOGGER.error(
                "Casper: Received invalid network parameters. Please report this bug. %r",
                {"chainId": chain_id},
            )
            return

        if self._state.is_permanently_disconnected:
            LOGGER.debug("Ignoring chain change to %s after permanent disconnect", chain_id)
            return

        if chain_id == LOADING_CHAIN_ID:
            self._handle_disconnect(True)
            return

        self._handle_connect(chain_id)

        if chain_id != self._state.chain_id:
            self._set_state(chain_id=chain_id)
            if self._state.initialized:
                self._events.emit("chainChanged", chain_id)

    def _handle_unlock_state_changed(self, params: Any = None) -> None:
        """Apply a new ``isUnlocked`` value and re-run the accounts update.

        There are no lock/unlock events; only the cascaded accounts change is
        observable.
        """

        payload = params if isinstance(params, Mapping) else {}
        is_unlocked = payload.get("isUnlocked")
        if not isinstance(is_unlocked, bool):
            LOGGER.error(
                "Casper: Received invalid isUnlocked parameter. Please report this bug. %r",
                {"isUnlocked": is_unlocked},
            )
            return

        if is_unlocked != self._state.is_unlocked:
            self._set_state(is_unlocked=is_unlocked)
            self._handle_accounts_changed(payload.get("accounts") or [])
