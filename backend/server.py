from fastapi import FastAPI, APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
import time
import uuid
from pathlib import Path
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import traceback

# Load environment variables first
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from config import Settings, get_settings, get_cors_config, validate_environment
from logging_config import setup_logging, get_logger, set_request_context, clear_request_context
from sentry_integration import init_sentry, capture_exception

from database import DocumentStore, init_firebase, close_firebase
from services.identity_provider import IdentityProvider
from identity.service import IdentityResolver, ProfileService
from identity.router import router as auth_router
from registration.service import RegistrationStore, SubjectLocks
from registration.router import router as registration_router
from utils.errors import APIError, error_body, http_error_body, validation_details

logger = get_logger(__name__)


def wire_services(
    app: FastAPI,
    settings: Settings,
    identity_provider: IdentityProvider,
    document_store: DocumentStore,
):
    """Build the resolver and stores on app.state from the two collaborators."""
    profiles = ProfileService(
        document_store,
        collection=settings.USERS_COLLECTION,
        default_provider=settings.DEFAULT_SIGN_IN_PROVIDER,
    )
    app.state.profile_service = profiles
    app.state.identity_resolver = IdentityResolver(identity_provider, profiles)
    app.state.registration_store = RegistrationStore(
        document_store,
        collection=settings.REGISTRATIONS_COLLECTION,
        locks=SubjectLocks(enabled=settings.REGISTRATION_SUBJECT_LOCKING),
    )


def create_app(
    settings: Optional[Settings] = None,
    identity_provider: Optional[IdentityProvider] = None,
    document_store: Optional[DocumentStore] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators passed in are used as-is; otherwise Firebase is initialized
    on startup from settings.
    """
    settings = settings or get_settings()
    injected = identity_provider is not None and document_store is not None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler"""
        logger.info("=" * 60)
        logger.info("Starting Conference Registration API...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Debug Mode: {settings.debug_enabled}")
        logger.info("=" * 60)

        env_status = validate_environment(settings)
        if not env_status["valid"]:
            for error in env_status["errors"]:
                logger.error(f"Configuration Error: {error}")
            if settings.is_production:
                raise RuntimeError("Cannot start in production with invalid configuration")

        for warning in env_status.get("warnings", []):
            logger.warning(f"Configuration Warning: {warning}")

        clients = None
        if not injected:
            try:
                clients = init_firebase(settings)
            except Exception as e:
                logger.error(f"Failed to initialize Firebase: {e}")
                raise
            wire_services(app, settings, clients.identity_provider, clients.document_store)

        logger.info("Conference Registration API started successfully")

        yield

        logger.info("Shutting down Conference Registration API...")
        if clients is not None:
            close_firebase(clients)

    app = FastAPI(
        title=settings.API_TITLE,
        description="""
        Conference registration backend.

        ### Authentication
        - Firebase ID tokens, sent as `Authorization: Bearer <token>`
        - POST /auth/login records the login in the user profile

        ### Registrations
        - One registration per user: create, read, update, delete
        - Admin listing of every registration
        """,
        version=settings.API_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug_enabled else None,
        redoc_url="/redoc" if settings.debug_enabled else None,
    )
    app.state.settings = settings

    if injected:
        wire_services(app, settings, identity_provider, document_store)

    # ==================== HEALTH CHECK ====================

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Liveness check - returns 200 if the process is running (doesn't check dependencies)."""
        return {
            "status": "healthy",
            "message": "Conference API is running",
            "version": settings.API_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    api_router = APIRouter(prefix=settings.API_PREFIX)
    api_router.include_router(auth_router)
    api_router.include_router(registration_router)
    app.include_router(api_router)

    # ==================== MIDDLEWARE ====================

    app.add_middleware(CORSMiddleware, **get_cors_config(settings))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing information"""
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID") or f"req-{uuid.uuid4().hex[:12]}"
        set_request_context(request_id=request_id)

        if settings.debug_enabled:
            logger.debug(f"{request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

            if settings.debug_enabled or response.status_code >= 400:
                logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")

            return response
        finally:
            clear_request_context()

    # ==================== EXCEPTION HANDLERS ====================

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        if exc.status_code >= 500:
            logger.error(f"{exc.kind}: {exc.message}", exc_info=exc.__cause__ is not None)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=http_error_body(exc.status_code, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Invalid request",
                "error": "validation_error",
                "details": validation_details(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions"""
        logger.error(f"Unhandled exception: {type(exc).__name__}")
        if settings.debug_enabled:
            logger.error(traceback.format_exc())
        capture_exception(exc, path=request.url.path)

        body = {"success": False, "message": "Internal server error", "error": "internal_error"}
        if not settings.is_production:
            body["type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=body)

    return app


settings = get_settings()

# Use JSON format in production, plain text in development
setup_logging(
    level=settings.LOG_LEVEL,
    json_format=settings.is_production,
    service_name="conference-api"
)

if settings.SENTRY_DSN:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=settings.API_VERSION,
        traces_sample_rate=0.1 if settings.is_production else 0.0,
    )

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server:app", host=settings.SERVER_HOST, port=settings.SERVER_PORT)
