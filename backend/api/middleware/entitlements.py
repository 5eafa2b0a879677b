"""
Entitlement and quota gates.

Layered after the auth gate. The entitlement gate never refuses an
authenticated caller; expired trials and subscriptions are downgraded to
free. The quota gate only meters free accounts.
"""

import logging
from typing import Any, Callable

from fastapi import BackgroundTasks, Depends, Request

from api.dependencies import get_entitlement_service
from modules.entitlements import Entitlement, EntitlementLookupError, IEntitlementService
from shared.exceptions import CrateMatchError
from shared.models import Identity

from .auth import get_current_identity, get_current_identity_from_query
from .headers import queue_response_header

logger = logging.getLogger(__name__)

DOWNGRADE_HEADER = "X-Auto-Downgraded"


def entitlement_gate(identity_dependency: Callable) -> Callable:
    """Build an entitlement dependency on top of an identity dependency."""

    async def dependency(
        request: Request,
        background_tasks: BackgroundTasks,
        identity: Identity = Depends(identity_dependency),
        service: IEntitlementService = Depends(get_entitlement_service),
    ) -> Entitlement:
        try:
            resolution = await service.resolve(identity)
        except CrateMatchError:
            raise
        except Exception as e:
            logger.exception(f"Entitlement check failed for {identity.email}")
            raise EntitlementLookupError() from e

        entitlement = resolution.entitlement
        if not resolution.created:
            background_tasks.add_task(service.touch_last_seen, entitlement.id)
        if resolution.downgraded:
            queue_response_header(request, DOWNGRADE_HEADER, "true")

        request.state.entitlement = entitlement
        return entitlement

    return dependency


def quota_gate(entitlement_dependency: Callable, request_dependency: Callable) -> Callable:
    """
    Build a daily-export quota dependency.

    ``request_dependency`` parses the operation's input. FastAPI skips a
    dependency whose sub-dependencies failed validation, so a malformed
    request is rejected with 422 before anything is charged.
    """

    async def dependency(
        request: Request,
        operation: Any = Depends(request_dependency),
        entitlement: Entitlement = Depends(entitlement_dependency),
        service: IEntitlementService = Depends(get_entitlement_service),
    ) -> Entitlement:
        charged = await service.charge_export(entitlement)
        request.state.entitlement = charged
        return charged

    return dependency


get_entitlement = entitlement_gate(get_current_identity)
get_stream_entitlement = entitlement_gate(get_current_identity_from_query)
