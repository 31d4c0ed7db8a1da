import logging
from dataclasses import dataclass

import firebase_admin
from firebase_admin import credentials, firestore_async

from config import Settings
from services.identity_provider import FirebaseIdentityProvider
from .document_store import FirestoreDocumentStore

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "conference-api"


@dataclass
class FirebaseClients:
    """Collaborators built from one Firebase app."""
    app: firebase_admin.App
    identity_provider: FirebaseIdentityProvider
    document_store: FirestoreDocumentStore


def init_firebase(settings: Settings) -> FirebaseClients:
    """
    Initialize the Firebase app and the clients built on it.

    Uses the service account file when present, otherwise falls back to
    application default credentials (e.g. GOOGLE_APPLICATION_CREDENTIALS).
    """
    if settings.credentials_file_present:
        cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_FILE)
        logger.info(f"Using Firebase credentials from {settings.FIREBASE_CREDENTIALS_FILE}")
    else:
        cred = credentials.ApplicationDefault()
        logger.info("Using application default credentials for Firebase")

    options = {}
    if settings.FIREBASE_PROJECT_ID:
        options["projectId"] = settings.FIREBASE_PROJECT_ID

    app = firebase_admin.initialize_app(cred, options or None, name=FIREBASE_APP_NAME)

    clients = FirebaseClients(
        app=app,
        identity_provider=FirebaseIdentityProvider(
            app,
            timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
            check_revoked=settings.FIREBASE_CHECK_REVOKED,
        ),
        document_store=FirestoreDocumentStore(
            firestore_async.client(app),
            timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        ),
    )
    logger.info(f"Firebase initialized (project: {app.project_id or 'default'})")
    return clients


def close_firebase(clients: FirebaseClients):
    """Release the Firebase app and its clients."""
    firebase_admin.delete_app(clients.app)
    logger.info("Firebase app released")
