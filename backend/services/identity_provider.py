"""
Identity Provider Client

Verifies bearer credentials issued by Firebase Authentication and fetches the
live provider-side user record.

The Firebase Admin SDK auth calls are blocking; they run in a worker thread
bounded by the configured timeout so a slow provider cannot hang a request.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

logger = logging.getLogger(__name__)


class CredentialRejectedError(Exception):
    """The provider refused the credential (expired, malformed, revoked, bad signature)."""
    pass


class ProviderLookupError(Exception):
    """The provider could not be reached or could not return the user."""
    pass


@dataclass
class VerifiedToken:
    """Result of a successful credential verification."""
    subject_id: str
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def sign_in_provider(self) -> Optional[str]:
        firebase_claims = self.claims.get("firebase") or {}
        return firebase_claims.get("sign_in_provider")


@dataclass
class ProviderUser:
    """Live user record held by the identity provider."""
    subject_id: str
    email: str = ""
    display_name: str = ""
    photo_url: str = ""
    email_verified: bool = False


class IdentityProvider(Protocol):

    async def verify(self, credential: str) -> VerifiedToken:
        """Raises CredentialRejectedError or ProviderLookupError."""
        ...

    async def fetch_profile(self, subject_id: str) -> ProviderUser:
        """Raises ProviderLookupError."""
        ...


class FirebaseIdentityProvider:
    """IdentityProvider backed by firebase_admin.auth."""

    def __init__(self, app, timeout: float = 10.0, check_revoked: bool = False):
        self.app = app
        self.timeout = timeout
        self.check_revoked = check_revoked

    async def _call(self, func, *args, **kwargs):
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs),
            timeout=self.timeout,
        )

    async def verify(self, credential: str) -> VerifiedToken:
        if not credential:
            raise CredentialRejectedError("id token is required")

        try:
            claims = await self._call(
                auth.verify_id_token,
                credential,
                app=self.app,
                check_revoked=self.check_revoked,
            )
        except asyncio.TimeoutError as e:
            raise ProviderLookupError("token verification timed out") from e
        except auth.CertificateFetchError as e:
            raise ProviderLookupError("could not fetch signing certificates") from e
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            raise CredentialRejectedError(type(e).__name__) from e

        return VerifiedToken(subject_id=claims["uid"], claims=dict(claims))

    async def fetch_profile(self, subject_id: str) -> ProviderUser:
        if not subject_id:
            raise ProviderLookupError("uid is required")

        try:
            record = await self._call(auth.get_user, subject_id, app=self.app)
        except asyncio.TimeoutError as e:
            raise ProviderLookupError("user lookup timed out") from e
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            raise ProviderLookupError(type(e).__name__) from e

        return ProviderUser(
            subject_id=record.uid,
            email=record.email or "",
            display_name=record.display_name or "",
            photo_url=record.photo_url or "",
            email_verified=bool(record.email_verified),
        )
