"""Provider options and environment parsing."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional


LOGGER = logging.getLogger(__name__)

_ALIASES = {
    "maxEventListeners": "max_event_listeners",
    "shouldSendMetadata": "should_send_metadata",
    "jsonRpcStreamName": "json_rpc_stream_name",
    "rejectPendingOnDisconnect": "reject_pending_on_disconnect",
}

_ENV_PREFIX = "CASPER_PROVIDER_"


@dataclass(frozen=True)
class ProviderOptions:
    """Options bag accepted by :class:`~casper_inpage_provider.core.provider.InpageProvider`.

    ``should_send_metadata`` is carried for the integration that sends page
    metadata; the provider itself only stores it.
    ``reject_pending_on_disconnect`` settles in-flight requests with the
    permanent-disconnect error instead of leaving them unresolved.
    """

    max_event_listeners: int = 100
    should_send_metadata: bool = True
    json_rpc_stream_name: str = "provider"
    reject_pending_on_disconnect: bool = False

    def __post_init__(self) -> None:
        if (
            not isinstance(self.max_event_listeners, int)
            or isinstance(self.max_event_listeners, bool)
            or self.max_event_listeners < 0
        ):
            raise ValueError("max_event_listeners must be a non-negative integer")
        if not isinstance(self.json_rpc_stream_name, str) or not self.json_rpc_stream_name:
            raise ValueError("json_rpc_stream_name must be a non-empty string")
        if self.json_rpc_stream_name == "phishing":
            raise ValueError("json_rpc_stream_name cannot use the reserved 'phishing' channel")

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> "ProviderOptions":
        """Build options from a mapping using either camelCase or snake_case keys."""

        if not options:
            return cls()
        return cls(**_normalise(options))

    def merged(self, overrides: Mapping[str, Any]) -> "ProviderOptions":
        """Return a copy with ``overrides`` applied on top of these options."""

        return replace(self, **_normalise(overrides))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ProviderOptions":
        env = os.environ if environ is None else environ
        options = cls()
        overrides: Dict[str, Any] = {}

        raw_max = env.get(f"{_ENV_PREFIX}MAX_LISTENERS")
        if raw_max is not None:
            try:
                overrides["max_event_listeners"] = int(raw_max)
            except ValueError as exc:
                raise ValueError(
                    f"{_ENV_PREFIX}MAX_LISTENERS must be an integer, got {raw_max!r}"
                ) from exc

        stream_name = env.get(f"{_ENV_PREFIX}STREAM_NAME")
        if stream_name:
            overrides["json_rpc_stream_name"] = stream_name

        overrides["should_send_metadata"] = env_flag(
            "SEND_METADATA", default=options.should_send_metadata, environ=env
        )
        overrides["reject_pending_on_disconnect"] = env_flag(
            "REJECT_PENDING", default=options.reject_pending_on_disconnect, environ=env
        )
        return replace(options, **overrides)


def _normalise(options: Mapping[str, Any]) -> Dict[str, Any]:
    known = {field.name for field in fields(ProviderOptions)}
    values: Dict[str, Any] = {}
    for key, value in options.items():
        name = _ALIASES.get(key, key)
        if name not in known:
            LOGGER.warning("Ignoring unknown provider option '%s'", key)
            continue
        values[name] = value
    return values


def env_flag(
    name: str,
    *,
    default: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> bool:
    env = os.environ if environ is None else environ
    raw = env.get(f"{_ENV_PREFIX}{name}")
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
