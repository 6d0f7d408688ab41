"""Immutable provider state value."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional, Tuple


@dataclass(frozen=True, slots=True)
class ProviderState:
    """Snapshot of the provider's connectivity, identity and unlock status.

    ``accounts`` is ``None`` until the first accounts update is applied.
    ``chain_id`` and ``selected_address`` back the provider's public read-only
    attributes.
    """

    accounts: Optional[Tuple[str, ...]] = None
    is_connected: bool = False
    is_unlocked: bool = False
    initialized: bool = False
    is_permanently_disconnected: bool = False
    chain_id: Optional[str] = None
    selected_address: Optional[str] = None

    def evolve(self, **changes: Any) -> "ProviderState":
        return replace(self, **changes)

    def same_accounts(self, accounts: Optional[Tuple[str, ...]]) -> bool:
        return self.accounts == accounts
