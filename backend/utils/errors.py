"""
Structured API Errors

One exception type per failure kind. Every error renders to the same body:

{
    "success": false,
    "message": "Registration not found",
    "error": "not_found"
}

The HTTP status communicates the kind; the message is always generic and
never carries transport or provider error text.
"""

from typing import Any, Dict, List, Optional, Sequence

from fastapi import status


class APIError(Exception):
    """Base class for errors that map onto an HTTP response."""

    kind: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra_body(self) -> Dict[str, Any]:
        return {}


# ==================== AUTHENTICATION ====================

class AuthError(APIError):
    """Resolving the caller's identity failed."""

    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "User not authenticated"


class MissingCredentialError(AuthError):
    kind = "missing_credential"
    default_message = "Authorization header is required"


class MalformedCredentialError(AuthError):
    kind = "malformed_credential"
    default_message = "Invalid authorization header format. Use: Bearer <token>"


class InvalidCredentialError(AuthError):
    kind = "invalid_credential"
    default_message = "Invalid or expired token"


class IdentityLookupFailedError(AuthError):
    """The credential was valid but the identity backend could not answer. Retryable."""

    kind = "identity_lookup_failed"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Failed to retrieve user information"


# ==================== REGISTRATION ====================

class InputValidationError(APIError):
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.details = details or []

    def extra_body(self) -> Dict[str, Any]:
        return {"details": self.details} if self.details else {}


class NotFoundError(APIError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Registration not found"


class ConflictError(APIError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class AlreadyRegisteredError(ConflictError):
    """Carries the existing registration so callers can offer an update instead."""

    kind = "already_registered"
    default_message = "User already has a registration. Please update instead."

    def __init__(self, existing, message: Optional[str] = None):
        super().__init__(message)
        self.existing = existing

    def extra_body(self) -> Dict[str, Any]:
        return {"registration": self.existing.model_dump(mode="json", by_alias=True)}


# ==================== STORE ====================

class StoreUnavailableError(APIError):
    kind = "store_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Storage service unavailable"


# ==================== RENDERING ====================

def error_body(exc: APIError) -> Dict[str, Any]:
    """Build the JSON body for an API error."""
    body = {
        "success": False,
        "message": exc.message,
        "error": exc.kind,
    }
    body.update(exc.extra_body())
    return body


def validation_details(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Flatten pydantic error dicts into parameter/message pairs.

    The leading "body" segment FastAPI adds to request errors is dropped.
    """
    details = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        details.append({
            "parameter": ".".join(loc) or None,
            "message": error.get("msg", "Invalid value"),
        })
    return details


HTTP_ERROR_KINDS = {
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


def http_error_body(status_code: int, detail: Any) -> Dict[str, Any]:
    """Envelope for errors raised by the framework itself (unknown route, wrong method)."""
    return {
        "success": False,
        "message": detail if isinstance(detail, str) and detail else "Request failed",
        "error": HTTP_ERROR_KINDS.get(status_code, "http_error"),
    }
