"""
Registration - Service Layer

Enforces at most one Registration per subject on a document store that has
no unique index. Uniqueness is a check-then-act sequence: query by userId,
act only if empty.

Two concurrent creates for the same subject can both pass the check and
store two documents. SubjectLocks closes that window inside one process;
across several instances the race remains.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping, Optional, Union

from pydantic import ValidationError

from database.document_store import DocumentStore
from utils.errors import (
    APIError,
    AlreadyRegisteredError,
    InputValidationError,
    NotFoundError,
    validation_details,
)

from .models import (
    PaymentStatus,
    Registration,
    RegistrationInput,
    RegistrationPatch,
)

logger = logging.getLogger(__name__)

SUBJECT_FIELD = "userId"

RegistrationData = Union[RegistrationInput, Mapping[str, Any]]
PatchData = Union[RegistrationPatch, Mapping[str, Any]]


class SubjectLocks:
    """
    Per-subject asyncio locks.

    Locks are weakly referenced and disappear once no request holds or
    waits on them.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @asynccontextmanager
    async def hold(self, subject_id: str):
        if not self.enabled:
            yield
            return

        lock = self._locks.get(subject_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subject_id] = lock
        async with lock:
            yield


class RegistrationStore:
    """Create/read/update/delete of the single registration owned by a subject."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str = "registrations",
        locks: Optional[SubjectLocks] = None,
    ):
        self.store = store
        self.collection = collection
        self.locks = locks or SubjectLocks()

    # ==================== HELPERS ====================

    @staticmethod
    def validate(data: RegistrationData) -> RegistrationInput:
        """Validate input before any store access."""
        if isinstance(data, RegistrationInput):
            return data
        try:
            return RegistrationInput.model_validate(data)
        except ValidationError as e:
            raise InputValidationError(details=validation_details(e.errors())) from e

    @staticmethod
    def validate_patch(patch: PatchData) -> RegistrationPatch:
        """
        Validate a partial update before any store access.

        Patch models are re-validated from their set fields, so instances
        built with model_construct cannot skip the field constraints.
        """
        data = patch.model_dump(exclude_unset=True) if isinstance(patch, RegistrationPatch) else patch
        try:
            return RegistrationPatch.model_validate(data)
        except ValidationError as e:
            raise InputValidationError(details=validation_details(e.errors())) from e

    async def _find(self, subject_id: str) -> Optional[Registration]:
        docs = await self.store.query(self.collection, SUBJECT_FIELD, subject_id, limit=1)
        if not docs:
            return None

        doc = docs[0]
        try:
            return Registration.from_document(doc.id, doc.data)
        except ValidationError as e:
            logger.error(f"Registration {doc.id} for {subject_id} cannot be decoded")
            raise APIError("Stored registration could not be read") from e

    # ==================== OPERATIONS ====================

    async def create(self, subject_id: str, data: RegistrationData) -> Registration:
        """
        Raises:
            InputValidationError: invalid input (nothing is read or written)
            AlreadyRegisteredError: subject already has a registration
            StoreUnavailableError: store unreachable
        """
        payload = self.validate(data)

        async with self.locks.hold(subject_id):
            existing = await self._find(subject_id)
            if existing is not None:
                raise AlreadyRegisteredError(existing)

            now = datetime.now(timezone.utc)
            registration = Registration(
                user_id=subject_id,
                payment_status=PaymentStatus.pending,
                registration_date=now,
                created_at=now,
                updated_at=now,
                **payload.model_dump(),
            )
            doc_id = await self.store.add(self.collection, registration.to_document())

        logger.info(f"Created registration {doc_id} for {subject_id}")
        return registration.model_copy(update={"id": doc_id})

    async def get_by_subject(self, subject_id: str) -> Registration:
        registration = await self._find(subject_id)
        if registration is None:
            raise NotFoundError()
        return registration

    async def update(self, subject_id: str, data: RegistrationData) -> Registration:
        """
        Merge-write the user-editable fields plus updatedAt; paymentStatus,
        registrationDate, createdAt and the document id are left untouched.
        Returns the record as re-read from the store.
        """
        patch = RegistrationPatch.from_input(self.validate(data))
        return await self.apply_patch(subject_id, patch)

    async def apply_patch(self, subject_id: str, patch: PatchData) -> Registration:
        """
        Raises:
            InputValidationError: invalid patch (nothing is read or written)
            NotFoundError: subject has no registration
        """
        patch = self.validate_patch(patch)

        async with self.locks.hold(subject_id):
            existing = await self._find(subject_id)
            if existing is None:
                raise NotFoundError("Registration not found. Please create one first.")

            fields = patch.to_merge_fields(datetime.now(timezone.utc))
            await self.store.set(self.collection, existing.id, fields, merge=True)
            doc = await self.store.get(self.collection, existing.id)

        if doc is None:
            raise NotFoundError()

        logger.info(f"Updated registration {existing.id} for {subject_id}: {sorted(fields)}")
        return Registration.from_document(doc.id, doc.data)

    async def delete(self, subject_id: str) -> None:
        async with self.locks.hold(subject_id):
            existing = await self._find(subject_id)
            if existing is None:
                raise NotFoundError()
            await self.store.delete(self.collection, existing.id)

        logger.info(f"Deleted registration {existing.id} for {subject_id}")

    async def list_all(self) -> AsyncIterator[Registration]:
        """
        Every registration in store-native order. Documents that fail to
        decode are skipped so one corrupt record does not hide the rest.
        """
        async for doc in self.store.stream(self.collection):
            try:
                yield Registration.from_document(doc.id, doc.data)
            except ValidationError:
                logger.warning(f"Skipping undecodable registration {doc.id}")
