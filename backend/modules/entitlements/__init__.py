"""
Entitlements module.

Trial/premium/free state per account, automatic expiry downgrades, and the
free tier's daily export quota.

Public API:
- Entitlement, Role, Resolution: data models
- evaluate: pure expiry state machine
- EntitlementService: resolution, quota and activity bookkeeping
- Repositories: SupabaseEntitlementRepository, InMemoryEntitlementRepository
"""

from .models import Entitlement, Resolution, Role, machine_id_for, new_trial
from .state_machine import Transition, TransitionKind, evaluate
from .cache import EntitlementCache
from .interfaces import IEntitlementRepository, IEntitlementService
from .repository import InMemoryEntitlementRepository, SupabaseEntitlementRepository
from .service import EntitlementService
from .exceptions import EntitlementCreateError, EntitlementLookupError, QuotaExceededError

__all__ = [
    # Models
    "Entitlement",
    "Resolution",
    "Role",
    "machine_id_for",
    "new_trial",
    # State machine
    "Transition",
    "TransitionKind",
    "evaluate",
    # Services
    "EntitlementCache",
    "EntitlementService",
    "IEntitlementRepository",
    "IEntitlementService",
    "InMemoryEntitlementRepository",
    "SupabaseEntitlementRepository",
    # Exceptions
    "EntitlementCreateError",
    "EntitlementLookupError",
    "QuotaExceededError",
]
