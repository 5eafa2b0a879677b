"""
Account endpoints.

Sign-up, sign-in, sign-out and password reset delegate to the identity
provider. ``/auth/me`` and ``/api/auth/verify`` report the caller's
identity together with their entitlement.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_auth_provider, get_entitlement_service, get_session_cache
from api.middleware.auth import get_current_identity
from api.middleware.entitlements import get_entitlement
from modules.auth import IAuthProvider, SessionCache
from modules.auth.models import (
    AuthSession,
    ResetPasswordRequest,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
)
from modules.entitlements import Entitlement, IEntitlementService, Role
from shared.models import Identity

logger = logging.getLogger(__name__)

router = APIRouter()


def _remember(cache: SessionCache, session: AuthSession) -> None:
    """Prime the session cache so the client's first authenticated call skips verification."""
    identity = session.identity.model_copy(update={"refresh_token": session.refresh_token})
    cache.store(session.access_token, identity)


def account_status(identity: Identity, entitlement: Optional[Entitlement]) -> dict:
    return {
        "user": identity.public_dict(),
        "machine": entitlement.to_record() if entitlement else None,
        "subscriptionStatus": entitlement.role.value if entitlement else Role.TRIAL.value,
    }


@router.post("/auth/signup", response_model=SessionResponse, response_model_exclude_none=True)
async def sign_up(
    body: SignUpRequest,
    provider: IAuthProvider = Depends(get_auth_provider),
    cache: SessionCache = Depends(get_session_cache),
) -> SessionResponse:
    """
    Create an account and sign straight in.

    When the provider holds the session back until the email is confirmed,
    the account is still created and the response says so.
    """
    session = await provider.sign_up(body.email, body.password)
    if session is None:
        return SessionResponse(
            user={"email": body.email},
            message=(
                "Account created successfully! Please check your email to verify "
                "your account, then sign in."
            ),
        )
    _remember(cache, session)
    logger.info(f"New account {body.email}")
    return SessionResponse.from_session(
        session, "Account created successfully! Redirecting to onboarding..."
    )


@router.post("/auth/signin", response_model=SessionResponse, response_model_exclude_none=True)
async def sign_in(
    body: SignInRequest,
    provider: IAuthProvider = Depends(get_auth_provider),
    cache: SessionCache = Depends(get_session_cache),
    entitlements: IEntitlementService = Depends(get_entitlement_service),
) -> SessionResponse:
    """Sign in and flag the account's entitlement as used from the web."""
    session = await provider.sign_in(body.email, body.password)
    _remember(cache, session)
    await entitlements.mark_web_user(session.identity.email)
    return SessionResponse.from_session(session, "Signed in successfully!")


@router.post("/auth/signout")
async def sign_out(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    provider: IAuthProvider = Depends(get_auth_provider),
    cache: SessionCache = Depends(get_session_cache),
) -> dict:
    token = request.state.access_token
    cache.evict(token)
    await provider.sign_out(token)
    logger.info(f"Signed out user {identity.id}")
    return {"success": True, "message": "Signed out successfully!"}


@router.post("/auth/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    provider: IAuthProvider = Depends(get_auth_provider),
) -> dict:
    await provider.reset_password(body.email, body.redirect_to)
    return {"success": True, "message": "Password reset link sent to your email!"}


@router.get("/auth/me")
async def me(
    identity: Identity = Depends(get_current_identity),
    entitlement: Entitlement = Depends(get_entitlement),
) -> dict:
    """Identity plus entitlement; creates a trial on first sight of an email."""
    return account_status(identity, entitlement)


@router.get("/api/auth/verify")
async def verify(
    identity: Identity = Depends(get_current_identity),
    entitlements: IEntitlementService = Depends(get_entitlement_service),
) -> dict:
    """Token check for the web app; reads the entitlement without creating one."""
    return {"valid": True, **account_status(identity, await entitlements.lookup(identity))}
