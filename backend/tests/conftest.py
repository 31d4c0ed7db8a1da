"""
Shared fixtures: in-memory stand-ins for the identity provider and the
document store, plus an app wired to them.
"""

import asyncio
import copy
import uuid
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database.document_store import Document
from services.identity_provider import (
    CredentialRejectedError,
    ProviderLookupError,
    ProviderUser,
    VerifiedToken,
)
from utils.errors import StoreUnavailableError


class InMemoryDocumentStore:
    """DocumentStore over nested dicts. Set `unavailable` to fail every call."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.unavailable = False
        self.calls: List[str] = []

    async def _enter(self, operation: str):
        self.calls.append(operation)
        # Yield to the loop like a real network call would
        await asyncio.sleep(0)
        if self.unavailable:
            raise StoreUnavailableError()

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(name, {})

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        await self._enter("get")
        data = self._collection(collection).get(doc_id)
        if data is None:
            return None
        return Document(id=doc_id, data=copy.deepcopy(data))

    async def query(self, collection: str, field_name: str, value: Any, limit: Optional[int] = None) -> List[Document]:
        await self._enter("query")
        matches = [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
            if data.get(field_name) == value
        ]
        return matches[:limit] if limit is not None else matches

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        await self._enter("add")
        doc_id = uuid.uuid4().hex[:20]
        self._collection(collection)[doc_id] = copy.deepcopy(data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        await self._enter("set")
        docs = self._collection(collection)
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(data))
        else:
            docs[doc_id] = copy.deepcopy(data)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._enter("delete")
        self._collection(collection).pop(doc_id, None)

    async def stream(self, collection: str):
        await self._enter("stream")
        for doc_id, data in list(self._collection(collection).items()):
            yield Document(id=doc_id, data=copy.deepcopy(data))

    def put(self, collection: str, doc_id: str, data: Dict[str, Any]):
        """Seed a document directly."""
        self._collection(collection)[doc_id] = copy.deepcopy(data)

    def docs(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collection(collection)


class FakeIdentityProvider:
    """
    IdentityProvider with a fixed token table.

    `tokens` maps credential -> subject id; `users` maps subject id -> ProviderUser.
    """

    def __init__(self):
        self.tokens: Dict[str, str] = {}
        self.users: Dict[str, ProviderUser] = {}
        self.sign_in_providers: Dict[str, str] = {}
        self.verify_unavailable = False
        self.lookup_unavailable = False
        self.verify_calls = 0
        self.lookup_calls = 0

    def add_user(self, token: str, user: ProviderUser, sign_in_provider: Optional[str] = None):
        self.tokens[token] = user.subject_id
        self.users[user.subject_id] = user
        if sign_in_provider:
            self.sign_in_providers[user.subject_id] = sign_in_provider

    async def verify(self, credential: str) -> VerifiedToken:
        self.verify_calls += 1
        if self.verify_unavailable:
            raise ProviderLookupError("certificates unavailable")
        subject_id = self.tokens.get(credential)
        if subject_id is None:
            raise CredentialRejectedError("unknown token")

        claims: Dict[str, Any] = {"uid": subject_id, "sub": subject_id}
        if subject_id in self.sign_in_providers:
            claims["firebase"] = {"sign_in_provider": self.sign_in_providers[subject_id]}
        return VerifiedToken(subject_id=subject_id, claims=claims)

    async def fetch_profile(self, subject_id: str) -> ProviderUser:
        self.lookup_calls += 1
        if self.lookup_unavailable or subject_id not in self.users:
            raise ProviderLookupError("user lookup failed")
        return self.users[subject_id]


ADA_TOKEN = "token-ada"
GRACE_TOKEN = "token-grace"


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def identity_provider():
    provider = FakeIdentityProvider()
    provider.add_user(
        ADA_TOKEN,
        ProviderUser(
            subject_id="uid-ada",
            email="ada@lovelace.org",
            display_name="Ada Lovelace",
            photo_url="https://img.lovelace.org/ada.png",
            email_verified=True,
        ),
    )
    provider.add_user(
        GRACE_TOKEN,
        ProviderUser(subject_id="uid-grace", email="grace@hopper.org", display_name="Grace Hopper"),
        sign_in_provider="password",
    )
    return provider


@pytest.fixture
def settings():
    return Settings(ENVIRONMENT="development", SENTRY_DSN="", API_PREFIX="/api/v1")


@pytest.fixture
def app(settings, identity_provider, document_store):
    from server import create_app

    return create_app(settings, identity_provider=identity_provider, document_store=document_store)


@pytest.fixture
def client(app):
    # Not used as a context manager: the lifespan (Firebase init) is skipped
    return TestClient(app)


@pytest.fixture
def ada_headers():
    return {"Authorization": f"Bearer {ADA_TOKEN}"}


@pytest.fixture
def grace_headers():
    return {"Authorization": f"Bearer {GRACE_TOKEN}"}


@pytest.fixture
def registration_body():
    return {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@lovelace.org",
        "country": "UK",
        "ticketType": "standard",
    }
