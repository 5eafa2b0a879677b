"""
Entitlement data models.

An entitlement (stored as a row of the ``machines`` table) is the trial or
subscription state of one account, plus its daily export counter.
"""

import hashlib
import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from shared.models import Identity

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Account tier."""

    TRIAL = "trial"
    FREE = "free"
    PREMIUM = "premium"


def machine_id_for(user_id: str) -> str:
    """Deterministic entitlement id for an identity, so creation is idempotent."""
    return hashlib.sha256(f"web-{user_id}".encode("utf-8")).hexdigest()


class Entitlement(BaseModel):
    """Trial/subscription state and export counter for one account."""

    id: str = Field(..., description="Derived from the identity id (see machine_id_for)")
    user_id: Optional[str] = Field(None, description="Identity id that created the record")
    email: str = Field(..., description="Account email; one record per email")
    role: Role = Field(default=Role.FREE, description="trial | free | premium")

    trial_start: Optional[datetime] = Field(None, description="Set while role is trial")
    trial_end: Optional[datetime] = Field(None, description="Set while role is trial")

    subscription_start: Optional[datetime] = Field(None, description="Set while role is premium")
    subscription_end: Optional[datetime] = Field(
        None, description="Premium expiry; absent means non-expiring"
    )
    subscription_type: Optional[str] = Field(None, description="e.g. monthly, yearly, lifetime")

    last_seen: Optional[datetime] = Field(None, description="Best-effort activity timestamp")
    exports_today: int = Field(default=0, ge=0, description="Exports charged on last_export_date")
    last_export_date: Optional[date] = Field(None, description="Calendar day of exports_today")
    web_user: bool = Field(default=False, description="Account has signed in on the web app")

    model_config = {"extra": "ignore"}

    @field_validator("role", mode="before")
    @classmethod
    def _unknown_role_is_free(cls, value: Any) -> Any:
        if isinstance(value, Role):
            return value
        try:
            return Role(str(value).lower())
        except ValueError:
            logger.warning(f"Unrecognized role {value!r}; treating as free")
            return Role.FREE

    @field_validator(
        "trial_start", "trial_end", "subscription_start", "subscription_end", "last_seen"
    )
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("exports_today", mode="before")
    @classmethod
    def _null_count_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("web_user", mode="before")
    @classmethod
    def _null_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def is_free(self) -> bool:
        return self.role == Role.FREE

    def to_record(self) -> dict[str, Any]:
        """Row representation for the persistent store."""
        return self.model_dump(mode="json")


def new_trial(identity: Identity, now: datetime, trial_days: int = 7) -> Entitlement:
    """Entitlement for an email seen for the first time."""
    return Entitlement(
        id=machine_id_for(identity.id),
        user_id=identity.id,
        email=identity.email,
        role=Role.TRIAL,
        trial_start=now,
        trial_end=now + timedelta(days=trial_days),
        last_seen=now,
        exports_today=0,
        last_export_date=now.date(),
        web_user=True,
    )


class Resolution(BaseModel):
    """What the entitlement gate resolved for one request."""

    entitlement: Entitlement
    created: bool = False
    downgraded: bool = False
