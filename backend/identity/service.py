"""
Identity - Service Layer

Turns a bearer credential into a trusted, enriched identity:
1. verify the credential with the identity provider
2. fetch the live provider-side user record
3. enrich from the persisted profile (best effort, never fails resolution)

Recording a login (profile upsert) is a separate operation, invoked only by
the login endpoint.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi.security.utils import get_authorization_scheme_param
from pydantic import ValidationError

from database.document_store import DocumentStore
from services.identity_provider import (
    IdentityProvider,
    VerifiedToken,
    ProviderUser,
    CredentialRejectedError,
    ProviderLookupError,
)
from utils.errors import (
    AuthError,
    MissingCredentialError,
    MalformedCredentialError,
    InvalidCredentialError,
    IdentityLookupFailedError,
    StoreUnavailableError,
)

from .models import Identity, IdentityContext, Profile

logger = logging.getLogger(__name__)

BEARER_SCHEME = "bearer"


def parse_authorization(header: Optional[str]) -> str:
    """
    Extract the token from an `Authorization: Bearer <token>` header.
    The scheme is matched case-insensitively, as HTTPBearer does.

    Raises:
        MissingCredentialError: header absent or blank
        MalformedCredentialError: wrong scheme, extra parts, or empty token
    """
    if header is None or not header.strip():
        raise MissingCredentialError()

    scheme, token = get_authorization_scheme_param(header)
    if scheme.lower() != BEARER_SCHEME or token.split() != [token]:
        raise MalformedCredentialError()

    return token


def build_identity(subject_id: str, provider_user: ProviderUser, profile: Optional[Profile]) -> Identity:
    """Merge live provider data with persisted profile timestamps and provider tag."""
    fields = {
        "uid": subject_id,
        "email": provider_user.email,
        "display_name": provider_user.display_name,
        "photo_url": provider_user.photo_url,
        "email_verified": provider_user.email_verified,
    }
    if profile is not None:
        fields.update(
            created_at=profile.created_at,
            updated_at=profile.updated_at,
            last_login_at=profile.last_login_at,
            provider=profile.provider,
        )
    return Identity(**fields)


class ProfileService:
    """Reads and upserts Profile documents (document id == subject id)."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str = "users",
        default_provider: str = "google.com",
    ):
        self.store = store
        self.collection = collection
        self.default_provider = default_provider

    async def get(self, subject_id: str) -> Optional[Profile]:
        """
        Raises:
            StoreUnavailableError: store unreachable
            pydantic.ValidationError: stored document cannot be decoded
        """
        doc = await self.store.get(self.collection, subject_id)
        if doc is None:
            return None
        return Profile.from_document({**doc.data, "uid": doc.data.get("uid") or doc.id})

    def provider_tag(self, verified: VerifiedToken) -> str:
        return verified.sign_in_provider or self.default_provider

    async def record_login(self, verified: VerifiedToken, provider_user: ProviderUser) -> Profile:
        """
        Upsert the profile for a fresh login.

        New subjects get createdAt = now; existing ones keep their createdAt and
        have every modelled field overwritten. The write is a merge, so fields
        this service does not model are left in place. Read-modify-write without a
        transaction: concurrent logins of one subject may lose the createdAt
        of the earlier writer.

        Raises:
            StoreUnavailableError: store unreachable
        """
        now = datetime.now(timezone.utc)
        subject_id = verified.subject_id
        created_at = now

        doc = await self.store.get(self.collection, subject_id)
        if doc is not None:
            try:
                existing = Profile.from_document({**doc.data, "uid": subject_id})
                created_at = existing.created_at or now
            except ValidationError:
                logger.warning(f"Unreadable profile for {subject_id}, resetting createdAt")

        profile = Profile(
            uid=subject_id,
            email=provider_user.email,
            display_name=provider_user.display_name,
            photo_url=provider_user.photo_url,
            provider=self.provider_tag(verified),
            email_verified=provider_user.email_verified,
            created_at=created_at,
            updated_at=now,
            last_login_at=now,
        )
        await self.store.set(self.collection, subject_id, profile.to_document(), merge=True)

        logger.info(f"Recorded login for {subject_id}")
        return profile


class IdentityResolver:
    """
    Resolves bearer credentials into IdentityContext values.

    Failure kinds:
    - MissingCredentialError / MalformedCredentialError: header problems, no network call made
    - InvalidCredentialError: the provider rejected the credential
    - IdentityLookupFailedError: the provider could not answer (retryable)
    """

    def __init__(self, provider: IdentityProvider, profiles: ProfileService):
        self.provider = provider
        self.profiles = profiles

    async def verify_credential(self, credential: str) -> VerifiedToken:
        if not credential:
            raise MissingCredentialError()

        try:
            return await self.provider.verify(credential)
        except CredentialRejectedError as e:
            logger.info(f"Credential rejected: {e}")
            raise InvalidCredentialError() from e
        except ProviderLookupError as e:
            logger.warning(f"Identity provider unavailable during verification: {e}")
            raise IdentityLookupFailedError() from e

    async def fetch_provider_user(self, subject_id: str) -> ProviderUser:
        try:
            return await self.provider.fetch_profile(subject_id)
        except ProviderLookupError as e:
            logger.warning(f"Identity lookup failed for {subject_id}: {e}")
            raise IdentityLookupFailedError() from e

    async def _load_profile(self, subject_id: str) -> Optional[Profile]:
        try:
            return await self.profiles.get(subject_id)
        except (StoreUnavailableError, ValidationError) as e:
            logger.warning(f"Profile enrichment skipped for {subject_id}: {type(e).__name__}")
            return None

    async def resolve(self, credential: str) -> IdentityContext:
        verified = await self.verify_credential(credential)
        provider_user = await self.fetch_provider_user(verified.subject_id)
        profile = await self._load_profile(verified.subject_id)

        identity = build_identity(verified.subject_id, provider_user, profile)
        return IdentityContext(
            identity=identity,
            claims=verified.claims,
            profile_found=profile is not None,
        )

    async def resolve_header(self, authorization: Optional[str]) -> IdentityContext:
        return await self.resolve(parse_authorization(authorization))

    async def resolve_optional(self, authorization: Optional[str]) -> Optional[IdentityContext]:
        """Same as resolve_header, but any authentication failure means anonymous."""
        try:
            return await self.resolve_header(authorization)
        except AuthError as e:
            logger.debug(f"Proceeding anonymously: {e.kind}")
            return None
