"""
Base repository class for table access.

Repositories encapsulate Supabase queries and the dict-to-model mapping
for one table, so services only ever see Pydantic models.
"""

from typing import Any, Generic, Optional, TypeVar

from supabase import Client


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for Supabase-backed repositories.

    Subclasses set ``table`` (or pass it in) and implement the
    domain-specific queries, mapping rows with their own ``_map`` method.

    Example:
        class EntitlementRepository(BaseRepository[Entitlement]):
            def get_by_id(self, entitlement_id: str) -> Optional[Entitlement]:
                result = self._query().select("*").eq("id", entitlement_id).execute()
                row = self._first(result)
                return self._map(row) if row else None
    """

    table: str = ""

    def __init__(self, db: Client, table: Optional[str] = None) -> None:
        """
        Initialize the repository with a Supabase client.

        Args:
            db: Supabase client instance for database operations.
            table: Table name, overriding the class default.
        """
        self._db = db
        if table:
            self.table = table

    def _query(self):
        return self._db.table(self.table)

    @staticmethod
    def _first(result: Any) -> Optional[dict[str, Any]]:
        """First row of a query result, or None."""
        data = getattr(result, "data", None)
        if not data:
            return None
        return data[0]
