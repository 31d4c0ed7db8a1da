"""
Registration - API Router

- POST   /registrations       - Create the caller's registration
- GET    /registrations/me    - Get the caller's registration
- PUT    /registrations/me    - Update the caller's registration
- DELETE /registrations/me    - Delete the caller's registration
- GET    /admin/registrations - List every registration

Permissions:
- all routes: authenticated caller
- admin listing: authenticated only, there is no role model yet
"""

import logging

from fastapi import APIRouter, Depends, status

from identity.models import IdentityContext
from middleware.auth import get_registration_store, require_identity

from .models import RegistrationInput, RegistrationResponse
from .service import RegistrationStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Registrations"])


@router.post(
    "/registrations",
    response_model=RegistrationResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_registration(
    body: RegistrationInput,
    context: IdentityContext = Depends(require_identity),
    store: RegistrationStore = Depends(get_registration_store),
):
    """
    Create a conference registration for the caller.

    **Rules:**
    - One registration per user; a second create returns 409 with the existing record
    - paymentStatus starts as "pending"
    """
    registration = await store.create(context.subject_id, body)
    return RegistrationResponse(
        success=True,
        message="Registration created successfully",
        registration=registration,
    )


@router.get("/registrations/me", response_model=RegistrationResponse, response_model_exclude_none=True)
async def get_my_registration(
    context: IdentityContext = Depends(require_identity),
    store: RegistrationStore = Depends(get_registration_store),
):
    registration = await store.get_by_subject(context.subject_id)
    return RegistrationResponse(
        success=True,
        message="Registration retrieved successfully",
        registration=registration,
    )


@router.put("/registrations/me", response_model=RegistrationResponse, response_model_exclude_none=True)
async def update_my_registration(
    body: RegistrationInput,
    context: IdentityContext = Depends(require_identity),
    store: RegistrationStore = Depends(get_registration_store),
):
    """
    Update the caller's registration.

    Payment status, registration date and creation time are never changed here.
    """
    registration = await store.update(context.subject_id, body)
    return RegistrationResponse(
        success=True,
        message="Registration updated successfully",
        registration=registration,
    )


@router.delete("/registrations/me", response_model=RegistrationResponse, response_model_exclude_none=True)
async def delete_my_registration(
    context: IdentityContext = Depends(require_identity),
    store: RegistrationStore = Depends(get_registration_store),
):
    await store.delete(context.subject_id)
    return RegistrationResponse(success=True, message="Registration deleted successfully")


@router.get("/admin/registrations", response_model=RegistrationResponse, response_model_exclude_none=True)
async def list_registrations(
    context: IdentityContext = Depends(require_identity),
    store: RegistrationStore = Depends(get_registration_store),
):
    """
    List all registrations.

    TODO: restrict to an admin role once roles exist; any authenticated user can list today.
    """
    registrations = [registration async for registration in store.list_all()]
    logger.info(f"Listed {len(registrations)} registrations for {context.subject_id}")
    return RegistrationResponse(
        success=True,
        message="Registrations retrieved successfully",
        registrations=registrations,
    )
