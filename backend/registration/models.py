"""
Registration - Data Models

A Registration is one conference-registration record. Each subject owns at
most one; the document id is store-assigned and the owner is the `userId`
field.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    refunded = "refunded"


_CAMEL_CONFIG = dict(
    alias_generator=to_camel,
    populate_by_name=True,
)


class RegistrationInput(BaseModel):
    """User-editable registration fields, used for both create and update."""
    model_config = ConfigDict(str_strip_whitespace=True, **_CAMEL_CONFIG)

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = ""
    organization: str = ""
    job_title: str = ""
    country: str = Field(..., min_length=1, max_length=100)
    city: str = ""
    dietary_requirements: str = ""
    special_needs: str = ""
    ticket_type: str = Field(..., min_length=1, max_length=50, description="standard, vip, student, etc.")
    sessions_of_interest: List[str] = Field(default_factory=list)


class Registration(BaseModel):
    """Stored registration. `id` is the document id and is not persisted as a field."""
    model_config = ConfigDict(extra="ignore", **_CAMEL_CONFIG)

    id: str = ""
    user_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    organization: str = ""
    job_title: str = ""
    country: str = ""
    city: str = ""
    dietary_requirements: str = ""
    special_needs: str = ""
    ticket_type: str = ""
    sessions_of_interest: List[str] = Field(default_factory=list)
    payment_status: PaymentStatus = PaymentStatus.pending
    registration_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Registration":
        return cls.model_validate({**data, "id": doc_id})

    def to_document(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"id"})
        data["paymentStatus"] = self.payment_status.value
        return data


class RegistrationPatch(BaseModel):
    """
    Partial update. Only fields that were explicitly set are written;
    system fields (id, userId, paymentStatus, registrationDate, createdAt)
    are not representable here.

    Fields carry the same constraints as RegistrationInput. A None default
    means "leave unchanged"; an explicit null is rejected, since it would
    make the stored record undecodable.
    """
    model_config = ConfigDict(str_strip_whitespace=True, **_CAMEL_CONFIG)

    first_name: str = Field(None, min_length=1, max_length=100)
    last_name: str = Field(None, min_length=1, max_length=100)
    email: EmailStr = None
    phone: str = None
    organization: str = None
    job_title: str = None
    country: str = Field(None, min_length=1, max_length=100)
    city: str = None
    dietary_requirements: str = None
    special_needs: str = None
    ticket_type: str = Field(None, min_length=1, max_length=50)
    sessions_of_interest: List[str] = None

    @classmethod
    def from_input(cls, data: RegistrationInput) -> "RegistrationPatch":
        """Every user-editable field of the input, including empty ones."""
        return cls(**data.model_dump())

    def to_merge_fields(self, updated_at: datetime) -> Dict[str, Any]:
        fields = self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
        fields["updatedAt"] = updated_at
        return fields


# ==================== RESPONSE MODELS ====================

class RegistrationResponse(BaseModel):
    success: bool
    message: str
    registration: Optional[Registration] = None
    registrations: Optional[List[Registration]] = None
