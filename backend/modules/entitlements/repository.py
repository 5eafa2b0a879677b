"""
Entitlement repositories.

SupabaseEntitlementRepository persists to the ``machines`` table.
InMemoryEntitlementRepository keeps records in a dict for development and tests.
"""

import logging
import threading
from typing import Any, Optional

from supabase import Client

from shared.repository import BaseRepository

from .interfaces import IEntitlementRepository
from .models import Entitlement

logger = logging.getLogger(__name__)


class SupabaseEntitlementRepository(BaseRepository[Entitlement], IEntitlementRepository):
    """
    Entitlement records in Supabase.

    Uses the service-role client; the API decides which record a caller may see.
    """

    table = "machines"

    def __init__(self, db: Client, table: Optional[str] = None) -> None:
        super().__init__(db, table)

    def _map(self, row: dict[str, Any]) -> Entitlement:
        return Entitlement.model_validate(row)

    def get_by_email(self, email: str) -> Optional[Entitlement]:
        result = self._query().select("*").eq("email", email).limit(1).execute()
        row = self._first(result)
        return self._map(row) if row else None

    def get_by_id(self, entitlement_id: str) -> Optional[Entitlement]:
        result = self._query().select("*").eq("id", entitlement_id).limit(1).execute()
        row = self._first(result)
        return self._map(row) if row else None

    def create_if_absent(self, entitlement: Entitlement) -> tuple[Entitlement, bool]:
        result = (
            self._query()
            .upsert(entitlement.to_record(), on_conflict="id", ignore_duplicates=True)
            .execute()
        )
        row = self._first(result)
        if row:
            return self._map(row), True

        # Another request created it first
        existing = self.get_by_id(entitlement.id)
        if existing is None:
            raise RuntimeError(f"Entitlement {entitlement.id} was neither inserted nor found")
        return existing, False

    def update(self, entitlement_id: str, changes: dict[str, Any]) -> None:
        self._query().update(changes).eq("id", entitlement_id).execute()

    def update_by_email(self, email: str, changes: dict[str, Any]) -> bool:
        result = self._query().update(changes).eq("email", email).execute()
        return bool(getattr(result, "data", None))


class InMemoryEntitlementRepository(IEntitlementRepository):
    """
    Entitlement records in a dict.

    For testing and development. Use SupabaseEntitlementRepository for production.
    """

    def __init__(self, records: Optional[list[Entitlement]] = None):
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Any]] = {}
        for record in records or []:
            self._records[record.id] = record.to_record()

    def __len__(self) -> int:
        return len(self._records)

    def all(self) -> list[Entitlement]:
        with self._lock:
            return [Entitlement.model_validate(row) for row in self._records.values()]

    def get_by_email(self, email: str) -> Optional[Entitlement]:
        with self._lock:
            for row in self._records.values():
                if row.get("email") == email:
                    return Entitlement.model_validate(row)
        return None

    def get_by_id(self, entitlement_id: str) -> Optional[Entitlement]:
        with self._lock:
            row = self._records.get(entitlement_id)
        return Entitlement.model_validate(row) if row else None

    def create_if_absent(self, entitlement: Entitlement) -> tuple[Entitlement, bool]:
        with self._lock:
            row = self._records.get(entitlement.id)
            if row is not None:
                return Entitlement.model_validate(row), False
            self._records[entitlement.id] = entitlement.to_record()
        return entitlement, True

    def update(self, entitlement_id: str, changes: dict[str, Any]) -> None:
        with self._lock:
            row = self._records.get(entitlement_id)
            if row is not None:
                row.update(changes)

    def update_by_email(self, email: str, changes: dict[str, Any]) -> bool:
        updated = False
        with self._lock:
            for row in self._records.values():
                if row.get("email") == email:
                    row.update(changes)
                    updated = True
        return updated
