"""Structured error types shared by the provider and the RPC engine."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from . import messages


# JSON-RPC 2.0 reserved codes
INVALID_REQUEST = -32600
INTERNAL_ERROR = -32603

# CloseEvent status codes used for EIP-1193 disconnect events
TRY_AGAIN_LATER = 1013
CLOSE_INTERNAL_ERROR = 1011

_UNSET = object()


class RpcError(Exception):
    """JSON-RPC style error carrying ``code``, ``message`` and optional ``data``."""

    def __init__(self, code: int, message: str, data: Any = _UNSET) -> None:
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self._data = data

    @property
    def data(self) -> Any:
        return None if self._data is _UNSET else self._data

    @property
    def has_data(self) -> bool:
        return self._data is not _UNSET

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.has_data:
            payload["data"] = self._data
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> "RpcError":
        """Build an error from a response ``error`` member.

        Unknown shapes collapse into an internal error so callers always see
        a consistent type.
        """

        if isinstance(payload, RpcError):
            return payload
        if isinstance(payload, Mapping):
            code = payload.get("code")
            message = payload.get("message")
            if isinstance(code, int) and not isinstance(code, bool):
                text = message if isinstance(message, str) and message else messages.errors.unknown_error()
                if "data" in payload:
                    return cls(code, text, payload["data"])
                return cls(code, text)
        if isinstance(payload, BaseException):
            return internal_error(str(payload) or messages.errors.unknown_error())
        return internal_error(messages.errors.unknown_error(), data=payload)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, message={self.message!r})"


class ProviderConstructionError(TypeError):
    """Raised when the provider is created with an unusable transport."""


def invalid_request(message: Optional[str] = None, *, data: Any = _UNSET) -> RpcError:
    return RpcError(INVALID_REQUEST, message or messages.errors.invalid_request(), data)


def internal_error(message: Optional[str] = None, *, data: Any = _UNSET) -> RpcError:
    return RpcError(INTERNAL_ERROR, message or messages.errors.internal(), data)


def disconnect_error(is_recoverable: bool, message: Optional[str] = None) -> RpcError:
    if is_recoverable:
        return RpcError(TRY_AGAIN_LATER, message or messages.errors.disconnected())
    return RpcError(CLOSE_INTERNAL_ERROR, message or messages.errors.permanently_disconnected())
