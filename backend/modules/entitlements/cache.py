"""
Entitlement cache.

Short-lived copies of entitlement records keyed by email, so the gate does
not read the store on every request. Entries are re-evaluated against the
state machine on every use; the TTL only bounds staleness against
out-of-band edits (for example a manual subscription change).
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .models import Entitlement

logger = logging.getLogger(__name__)

KEY_PREFIX = "entitlement_"


@dataclass
class _Entry:
    entitlement: Entitlement
    cached_at: float


class EntitlementCache:
    """TTL cache of entitlements keyed by ``"entitlement_" + email``."""

    def __init__(self, ttl_seconds: float = 120, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def key(email: str) -> str:
        return f"{KEY_PREFIX}{email}"

    def get(self, email: str) -> Optional[Entitlement]:
        entry = self._entries.get(self.key(email))
        if entry is None or self._clock() - entry.cached_at > self.ttl_seconds:
            return None
        return entry.entitlement

    def set(self, entitlement: Entitlement) -> None:
        self._entries[self.key(entitlement.email)] = _Entry(entitlement, self._clock())

    def delete(self, email: str) -> None:
        self._entries.pop(self.key(email), None)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Drop entries older than the TTL. Returns the number removed."""
        now = self._clock()
        stale = [k for k, entry in self._entries.items() if now - entry.cached_at > self.ttl_seconds]
        for k in stale:
            self._entries.pop(k, None)
        return len(stale)
