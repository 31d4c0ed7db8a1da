"""
Document Store

Minimal document-store surface used by the identity and registration modules:
get / query / add / set(merge) / delete / stream by collection + document id.

The store has last-write-wins semantics and no uniqueness constraints.
Every call is bounded by a timeout; transport failures and timeouts surface
as StoreUnavailableError, never as raw client exceptions.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from utils.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class Document:
    """A stored document: its store-assigned id plus field data."""
    id: str
    data: Dict[str, Any] = field(default_factory=dict)


class DocumentStore(Protocol):
    """Operations the application needs from a document store."""

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Fetch a document by id; None if it does not exist."""
        ...

    async def query(
        self,
        collection: str,
        field_name: str,
        value: Any,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Single-field equality query."""
        ...

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""
        ...

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Write a document; with merge=True only the given fields are overwritten."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    def stream(self, collection: str) -> AsyncIterator[Document]:
        """Iterate every document of a collection in store-native order."""
        ...


_STORE_ERRORS = (
    google_exceptions.GoogleAPIError,
    auth_exceptions.GoogleAuthError,
    asyncio.TimeoutError,
)


class FirestoreDocumentStore:
    """DocumentStore backed by the async Firestore client."""

    def __init__(self, client, timeout: float = 10.0):
        """
        Args:
            client: google.cloud.firestore.AsyncClient
            timeout: Ceiling in seconds for each store call
        """
        self.client = client
        self.timeout = timeout

    async def _bounded(self, operation: str, collection: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except _STORE_ERRORS as e:
            logger.error(f"Document store {operation} on '{collection}' failed: {type(e).__name__}")
            raise StoreUnavailableError() from e

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ref = self.client.collection(collection).document(doc_id)
        snapshot = await self._bounded("get", collection, ref.get())
        if not snapshot.exists:
            return None
        return Document(id=snapshot.id, data=snapshot.to_dict() or {})

    async def query(
        self,
        collection: str,
        field_name: str,
        value: Any,
        limit: Optional[int] = None,
    ) -> List[Document]:
        query = self.client.collection(collection).where(
            filter=FieldFilter(field_name, "==", value)
        )
        if limit is not None:
            query = query.limit(limit)
        snapshots = await self._bounded("query", collection, query.get())
        return [Document(id=s.id, data=s.to_dict() or {}) for s in snapshots]

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        _, ref = await self._bounded("add", collection, self.client.collection(collection).add(data))
        return ref.id

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        merge: bool = False,
    ) -> None:
        ref = self.client.collection(collection).document(doc_id)
        await self._bounded("set", collection, ref.set(data, merge=merge))

    async def delete(self, collection: str, doc_id: str) -> None:
        ref = self.client.collection(collection).document(doc_id)
        await self._bounded("delete", collection, ref.delete())

    async def stream(self, collection: str) -> AsyncIterator[Document]:
        snapshots = self.client.collection(collection).stream()
        while True:
            try:
                snapshot = await self._bounded("stream", collection, snapshots.__anext__())
            except StopAsyncIteration:
                return
            yield Document(id=snapshot.id, data=snapshot.to_dict() or {})
