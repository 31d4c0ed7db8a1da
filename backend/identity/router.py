"""
Identity - API Router

- POST /auth/login   - Verify a credential and record the login (public)
- POST /auth/verify  - Verify the bearer credential in the Authorization header
- POST /auth/logout  - Acknowledge logout (tokens are invalidated client-side)
- GET  /me           - Current identity (auth required)
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends

from middleware.auth import (
    get_identity_resolver,
    get_profile_service,
    optional_identity,
    require_identity,
)
from utils.errors import InputValidationError, StoreUnavailableError

from .models import AuthResponse, IdentityContext, LoginRequest
from .service import IdentityResolver, ProfileService, build_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post("/auth/login", response_model=AuthResponse, response_model_exclude_none=True)
async def login(
    body: LoginRequest,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    profiles: ProfileService = Depends(get_profile_service),
):
    """
    Log in with an identity provider credential (Firebase ID token).

    Body: {"credential": "<id token>"} ("idToken" is also accepted).

    The profile save is best effort: if the store is unavailable the login
    still succeeds.
    """
    credential = body.token
    if not credential:
        raise InputValidationError("Invalid request: credential is required")

    verified = await resolver.verify_credential(credential)
    provider_user = await resolver.fetch_provider_user(verified.subject_id)

    try:
        profile = await profiles.record_login(verified, provider_user)
    except StoreUnavailableError:
        logger.warning(f"Profile save pending for {verified.subject_id}")
        user = build_identity(verified.subject_id, provider_user, None).model_copy(
            update={
                "provider": profiles.provider_tag(verified),
                "last_login_at": datetime.now(timezone.utc),
            }
        )
        return AuthResponse(
            success=True,
            message="Logged in successfully (profile save pending)",
            user=user,
        )

    return AuthResponse(
        success=True,
        message="Logged in successfully",
        user=profile.to_identity(),
    )


@router.post("/auth/verify", response_model=AuthResponse, response_model_exclude_none=True)
async def verify_token(context: IdentityContext = Depends(require_identity)):
    """Verify the credential in `Authorization: Bearer <token>` and return the identity."""
    return AuthResponse(success=True, message="Token is valid", user=context.identity)


@router.post("/auth/logout", response_model=AuthResponse, response_model_exclude_none=True)
async def logout(context: Optional[IdentityContext] = Depends(optional_identity)):
    """
    Acknowledge logout. Tokens are revoked client-side by the identity provider
    SDK; a presented credential is only used to attribute the log line.
    """
    if context is not None:
        logger.info(f"Logout for {context.subject_id}")
    return AuthResponse(success=True, message="Logged out successfully")


@router.get("/me", response_model=AuthResponse, response_model_exclude_none=True)
async def get_current_user(context: IdentityContext = Depends(require_identity)):
    return AuthResponse(success=True, message="User retrieved successfully", user=context.identity)
