from .document_store import Document, DocumentStore, FirestoreDocumentStore
from .connection import FirebaseClients, init_firebase, close_firebase

__all__ = [
    'Document', 'DocumentStore', 'FirestoreDocumentStore',
    'FirebaseClients', 'init_firebase', 'close_firebase',
]
