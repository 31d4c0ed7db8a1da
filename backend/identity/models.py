"""
Identity - Data Models

Identity is the verified caller, rebuilt on every request.
Profile is its persisted counterpart in the users collection, keyed by
subject identifier (one document per subject, document id == uid).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Identity(BaseModel):
    """
    Verified credential subject.

    Timestamps and the provider tag are only present when a Profile exists.
    Instances are immutable.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    uid: str
    email: str = ""
    display_name: str = ""
    photo_url: str = ""
    provider: Optional[str] = None
    email_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class Profile(BaseModel):
    """Persisted user profile document."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    uid: str
    email: str = ""
    display_name: str = ""
    photo_url: str = ""
    provider: Optional[str] = None
    email_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "Profile":
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_identity(self) -> Identity:
        return Identity(**self.model_dump())


@dataclass(frozen=True)
class IdentityContext:
    """Request-scoped view of the authenticated caller."""
    identity: Identity
    claims: Dict[str, Any] = field(default_factory=dict)
    profile_found: bool = False

    @property
    def subject_id(self) -> str:
        return self.identity.uid

    @property
    def email(self) -> str:
        return self.identity.email


# ==================== REQUEST/RESPONSE MODELS ====================

class LoginRequest(BaseModel):
    """
    Login body. `idToken` is accepted as an alias of `credential`.

    Kept optional so a missing credential is reported as a 400 by the handler.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    credential: Optional[str] = None
    id_token: Optional[str] = None

    @property
    def token(self) -> str:
        return (self.credential or self.id_token or "").strip()


class AuthResponse(BaseModel):
    success: bool
    message: str
    user: Optional[Identity] = None
