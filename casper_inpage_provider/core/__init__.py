"""Core components of the Casper in-page provider."""

from .config import ProviderOptions
from .errors import ProviderConstructionError, RpcError
from .event_emitter import SafeEventEmitter
from .multiplex import ObjectMultiplex
from .notifications import NotificationRouter
from .provider import InpageProvider
from .rpc_engine import JRPCEngine, StreamMiddleware, create_stream_middleware
from .state import ProviderState
from .streams import Duplex, duplex_pair, is_duplex_stream, pump
from .window_handle import CallbackWindowHandle, EngineWindowHandle, WindowHandle

__all__ = [
    "CallbackWindowHandle",
    "create_stream_middleware",
    "Duplex",
    "duplex_pair",
    "EngineWindowHandle",
    "InpageProvider",
    "is_duplex_stream",
    "JRPCEngine",
    "NotificationRouter",
    "ObjectMultiplex",
    "ProviderConstructionError",
    "ProviderOptions",
    "ProviderState",
    "pump",
    "RpcError",
    "SafeEventEmitter",
    "StreamMiddleware",
    "WindowHandle",
]
