"""
Session cache.

Memoizes "bearer token -> verified identity" so the auth gate does not call
the identity provider on every request. Freshness is enforced on read; the
periodic sweep only bounds memory.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from shared.models import Identity

from .interfaces import IAuthProvider
from .models import AuthSession, CachedSession

logger = logging.getLogger(__name__)


class SessionCache:
    """
    In-process cache of verified sessions keyed by the token string.

    Concurrent stores for the same token are last-write-wins; every entry is
    a re-derivation of what the provider already told us.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        refresh_threshold_seconds: float = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.refresh_threshold_seconds = refresh_threshold_seconds
        self._clock = clock
        self._entries: dict[str, CachedSession] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, token: str) -> bool:
        return self.get(token) is not None

    def _is_fresh(self, entry: CachedSession, now: float) -> bool:
        return now - entry.cached_at <= self.ttl_seconds

    def get(self, token: str) -> Optional[CachedSession]:
        """Return the entry for ``token``, or None if absent or older than the TTL."""
        entry = self._entries.get(token)
        if entry is None:
            return None
        if not self._is_fresh(entry, self._clock()):
            return None
        return entry

    def resolve(self, token: str) -> Optional[Identity]:
        entry = self.get(token)
        return entry.identity if entry else None

    def store(self, token: str, identity: Identity) -> None:
        self._entries[token] = CachedSession(identity=identity, cached_at=self._clock())

    def evict(self, token: str) -> None:
        self._entries.pop(token, None)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Drop entries older than the TTL. Returns the number removed."""
        now = self._clock()
        stale = [token for token, entry in self._entries.items() if not self._is_fresh(entry, now)]
        for token in stale:
            self._entries.pop(token, None)
        return len(stale)

    def needs_refresh(self, identity: Identity) -> bool:
        """True if the token expires within the refresh threshold and is still valid."""
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        return identity.expires_within(self.refresh_threshold_seconds, now=now)

    async def maybe_refresh(
        self,
        token: str,
        identity: Identity,
        provider: IAuthProvider,
        refresh_token: Optional[str] = None,
    ) -> Optional[AuthSession]:
        """
        Silently refresh a soon-to-expire session.

        On success the identity is stored under the new access token (the old
        entry is evicted) and the new session is returned so the caller can
        hand the tokens back to the client. Any failure returns None and the
        current token keeps being honored until the provider rejects it.
        """
        refresh_token = refresh_token or identity.refresh_token
        if not refresh_token or not self.needs_refresh(identity):
            return None

        try:
            session = await provider.refresh_session(refresh_token)
        except Exception as e:
            logger.warning(f"Token refresh failed for user {identity.id}: {e}")
            return None

        refreshed = session.identity.model_copy(
            update={
                "expires_at": session.expires_at,
                "refresh_token": session.refresh_token,
            }
        )
        self.evict(token)
        self.store(session.access_token, refreshed)
        logger.info(f"Refreshed session for user {identity.id}")
        return session.model_copy(update={"identity": refreshed})
