"""
Trial/premium/free state machine.

``evaluate`` is pure: it decides what an entitlement looks like at ``now``
and which field changes a downgrade needs persisted. Persistence and caching
live in the service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .models import Entitlement, Role


class TransitionKind(str, Enum):
    ACTIVE_TRIAL = "active_trial"
    ACTIVE_PREMIUM = "active_premium"
    FREE = "free"
    TRIAL_EXPIRED = "trial_expired"
    PREMIUM_EXPIRED = "premium_expired"


TRIAL_FIELDS_CLEARED = {"trial_start": None, "trial_end": None}
SUBSCRIPTION_FIELDS_CLEARED = {
    "subscription_start": None,
    "subscription_end": None,
    "subscription_type": None,
}


@dataclass(frozen=True)
class Transition:
    """
    Outcome of evaluating an entitlement.

    Attributes:
        entitlement: The entitlement as it should be seen from now on
        kind: Which branch applied
        changes: Fields to persist; empty unless this is a downgrade
    """

    entitlement: Entitlement
    kind: TransitionKind
    changes: dict[str, Any] = field(default_factory=dict)

    @property
    def downgraded(self) -> bool:
        return bool(self.changes)


def _downgrade(entitlement: Entitlement, kind: TransitionKind, cleared: dict[str, Any]) -> Transition:
    changes = {"role": Role.FREE.value, **cleared}
    downgraded = entitlement.model_copy(update={"role": Role.FREE, **cleared})
    return Transition(entitlement=downgraded, kind=kind, changes=changes)


def evaluate(entitlement: Entitlement, now: datetime) -> Transition:
    """
    Apply expiry rules to ``entitlement`` at time ``now``.

    An active trial is checked first. Expired trials and expired premium
    subscriptions become free; everything else passes through unchanged.
    """
    if entitlement.role == Role.TRIAL and entitlement.trial_end and now < entitlement.trial_end:
        return Transition(entitlement, TransitionKind.ACTIVE_TRIAL)

    if entitlement.role == Role.PREMIUM:
        end = entitlement.subscription_end
        if end is not None and now >= end:
            return _downgrade(entitlement, TransitionKind.PREMIUM_EXPIRED, SUBSCRIPTION_FIELDS_CLEARED)
        return Transition(entitlement, TransitionKind.ACTIVE_PREMIUM)

    if entitlement.role == Role.TRIAL:
        # Expired, or a trial row missing its end date
        return _downgrade(entitlement, TransitionKind.TRIAL_EXPIRED, TRIAL_FIELDS_CLEARED)

    return Transition(entitlement, TransitionKind.FREE)
