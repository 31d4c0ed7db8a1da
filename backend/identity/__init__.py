"""
Identity Module

Resolves bearer credentials into a request-scoped identity and keeps the
persisted user profile in step with logins.

Features:
- Bearer header parsing with distinct missing/malformed failures
- Provider verification and live user lookup
- Best-effort enrichment from the stored profile
- Login upsert preserving the original createdAt
"""

from .models import Identity, Profile, IdentityContext
from .service import IdentityResolver, ProfileService, parse_authorization

__all__ = [
    'Identity',
    'Profile',
    'IdentityContext',
    'IdentityResolver',
    'ProfileService',
    'parse_authorization',
]
