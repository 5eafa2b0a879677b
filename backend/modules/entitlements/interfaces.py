"""
Entitlement module interfaces.
"""

from datetime import date, datetime
from typing import Any, Optional, Protocol, runtime_checkable

from shared.models import Identity

from .models import Entitlement, Resolution


@runtime_checkable
class IEntitlementRepository(Protocol):
    """
    Persistent store for entitlement records.

    Methods are synchronous; the service runs them off the event loop.
    """

    def get_by_email(self, email: str) -> Optional[Entitlement]:
        ...

    def get_by_id(self, entitlement_id: str) -> Optional[Entitlement]:
        ...

    def create_if_absent(self, entitlement: Entitlement) -> tuple[Entitlement, bool]:
        """
        Insert ``entitlement`` unless a record with its id already exists.

        Returns the stored record and whether this call created it.
        """
        ...

    def update(self, entitlement_id: str, changes: dict[str, Any]) -> None:
        ...

    def update_by_email(self, email: str, changes: dict[str, Any]) -> bool:
        """Apply ``changes`` to the record for ``email``; False if there is none."""
        ...


@runtime_checkable
class IEntitlementService(Protocol):
    """Entitlement operations used by the API gates and routes."""

    async def resolve(self, identity: Identity, now: Optional[datetime] = None) -> Resolution:
        """Find or create the caller's entitlement and apply expiry transitions."""
        ...

    async def lookup(self, identity: Identity) -> Optional[Entitlement]:
        """Read-only lookup; never creates or downgrades."""
        ...

    async def charge_export(self, entitlement: Entitlement, today: Optional[date] = None) -> Entitlement:
        """Pre-charge one export against a free account's daily quota."""
        ...

    async def touch_last_seen(self, entitlement_id: str) -> None:
        ...

    async def mark_web_user(self, email: str) -> None:
        ...
