"""
Authentication Middleware and Dependencies

Provides:
- require_identity: resolve the caller from `Authorization: Bearer <token>`, 401 otherwise
- optional_identity: same, but anonymous callers get None
- accessors for the resolver and services held on app.state
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from identity.models import IdentityContext
from identity.service import IdentityResolver, ProfileService
from logging_config import set_request_context
from registration.service import RegistrationStore
from sentry_integration import set_user

logger = logging.getLogger(__name__)


# ==================== SERVICE ACCESSORS ====================

def get_identity_resolver(request: Request) -> IdentityResolver:
    return request.app.state.identity_resolver


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_registration_store(request: Request) -> RegistrationStore:
    return request.app.state.registration_store


# ==================== DEPENDENCIES ====================

# Declares the bearer scheme in OpenAPI. auto_error is off so a missing or
# malformed header reaches parse_authorization and keeps its own error kind.
security = HTTPBearer(auto_error=False)


def authorization_header(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """The Authorization value to resolve: HTTPBearer's parse when it has one, else the raw header."""
    if credentials is not None:
        return f"{credentials.scheme} {credentials.credentials}"
    return request.headers.get("Authorization")


async def require_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> IdentityContext:
    """
    Resolve the current caller.
    Raises an AuthError (401, or 503 when the provider is unreachable).
    """
    context = await resolver.resolve_header(authorization_header(request, credentials))

    set_request_context(user_id=context.subject_id, user_email=context.email)
    set_user(context.subject_id, context.email)
    return context


async def optional_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Optional[IdentityContext]:
    """
    Get the current caller if a valid credential is presented, otherwise None.
    Useful for endpoints that work differently for authenticated vs anonymous users.
    """
    context = await resolver.resolve_optional(authorization_header(request, credentials))
    if context is not None:
        set_request_context(user_id=context.subject_id, user_email=context.email)
    return context
