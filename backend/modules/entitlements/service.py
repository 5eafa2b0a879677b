"""
Entitlement service.

Wraps the pure state machine with persistence and caching: finds or creates
the caller's record, persists expiry downgrades (fail-open), keeps the
daily export counter, and records best-effort activity timestamps.
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from shared.models import Identity

from .cache import EntitlementCache
from .exceptions import EntitlementCreateError, EntitlementLookupError, QuotaExceededError
from .interfaces import IEntitlementRepository, IEntitlementService
from .models import Entitlement, Resolution, Role, new_trial
from .state_machine import evaluate

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntitlementService(IEntitlementService):
    """
    Entitlement resolution and daily quota.

    Read-modify-write sequences against the store are not transactional.
    Concurrent requests for the same account may both persist the same
    downgrade, and concurrent quota charges may over-admit by the number of
    requests in flight.
    """

    def __init__(
        self,
        repository: IEntitlementRepository,
        cache: Optional[EntitlementCache] = None,
        trial_days: int = 7,
        daily_export_limit: int = 1,
    ):
        self._repo = repository
        self._cache = cache or EntitlementCache()
        self.trial_days = trial_days
        self.daily_export_limit = daily_export_limit

    @property
    def cache(self) -> EntitlementCache:
        return self._cache

    async def _find(self, email: str) -> Optional[Entitlement]:
        cached = self._cache.get(email)
        if cached is not None:
            return cached
        try:
            return await asyncio.to_thread(self._repo.get_by_email, email)
        except Exception as e:
            logger.error(f"Entitlement lookup failed for {email}: {e}")
            raise EntitlementLookupError() from e

    async def _persist_quietly(self, entitlement_id: str, changes: dict[str, Any], what: str) -> bool:
        try:
            await asyncio.to_thread(self._repo.update, entitlement_id, changes)
            return True
        except Exception as e:
            logger.warning(f"Failed to persist {what} for entitlement {entitlement_id}: {e}")
            return False

    async def resolve(self, identity: Identity, now: Optional[datetime] = None) -> Resolution:
        """
        Find or create the caller's entitlement and apply expiry transitions.

        Never refuses an authenticated caller for lack of entitlement: an
        expired trial or subscription degrades to free. Raises only when the
        store cannot be read, or a first-time record cannot be written.
        """
        now = now or _utcnow()
        existing = await self._find(identity.email)

        if existing is None:
            trial = new_trial(identity, now, self.trial_days)
            try:
                entitlement, created = await asyncio.to_thread(self._repo.create_if_absent, trial)
            except Exception as e:
                logger.error(f"Failed to create entitlement for {identity.email}: {e}")
                raise EntitlementCreateError() from e
            if not created:
                # Lost a creation race; still subject to expiry rules
                return await self._apply_transition(entitlement, now)
            logger.info(
                f"Created trial entitlement for {identity.email} "
                f"(ends {entitlement.trial_end.isoformat()})"
            )
            self._cache.set(entitlement)
            return Resolution(entitlement=entitlement, created=True)

        return await self._apply_transition(existing, now)

    async def _apply_transition(self, entitlement: Entitlement, now: datetime) -> Resolution:
        transition = evaluate(entitlement, now)
        if transition.downgraded:
            logger.info(
                f"Downgrading {entitlement.email} to free ({transition.kind.value})"
            )
            await self._persist_quietly(entitlement.id, transition.changes, "downgrade")
        self._cache.set(transition.entitlement)
        return Resolution(
            entitlement=transition.entitlement,
            downgraded=transition.downgraded,
        )

    async def lookup(self, identity: Identity) -> Optional[Entitlement]:
        """Current record for the identity's email, without creating or downgrading it."""
        return await self._find(identity.email)

    async def charge_export(self, entitlement: Entitlement, today: Optional[date] = None) -> Entitlement:
        """
        Pre-charge one export against the daily quota.

        Only free accounts are metered. The counter is reset first when the
        last export happened on an earlier day. The charge is taken before the
        export runs, so a failed export still uses the day's quota.

        Raises:
            QuotaExceededError: The daily limit is used up (nothing is written)
        """
        if entitlement.role != Role.FREE:
            return entitlement

        today = today or _utcnow().date()
        if entitlement.last_export_date != today:
            entitlement = entitlement.model_copy(
                update={"exports_today": 0, "last_export_date": today}
            )
            await self._persist_quietly(
                entitlement.id,
                {"exports_today": 0, "last_export_date": today.isoformat()},
                "daily export reset",
            )
            self._cache.set(entitlement)

        if entitlement.exports_today >= self.daily_export_limit:
            logger.info(
                f"Daily export limit reached for {entitlement.email} "
                f"({entitlement.exports_today}/{self.daily_export_limit})"
            )
            raise QuotaExceededError(entitlement.exports_today, self.daily_export_limit)

        charged = entitlement.model_copy(update={"exports_today": entitlement.exports_today + 1})
        await self._persist_quietly(
            charged.id,
            {"exports_today": charged.exports_today, "last_export_date": today.isoformat()},
            "export count",
        )
        self._cache.set(charged)
        return charged

    async def touch_last_seen(self, entitlement_id: str) -> None:
        """Best-effort activity timestamp; failures are logged only."""
        await self._persist_quietly(entitlement_id, {"last_seen": _utcnow().isoformat()}, "last_seen")

    async def mark_web_user(self, email: str) -> None:
        """Flag an existing record as used from the web app (best effort)."""
        try:
            updated = await asyncio.to_thread(
                self._repo.update_by_email,
                email,
                {"web_user": True, "last_seen": _utcnow().isoformat()},
            )
        except Exception as e:
            logger.warning(f"Failed to mark {email} as web user: {e}")
            return
        if updated:
            self._cache.delete(email)
