"""
Utils Package

Provides utility modules for:
- errors: Error taxonomy and structured error bodies
"""

from .errors import (
    APIError,
    AuthError,
    MissingCredentialError,
    MalformedCredentialError,
    InvalidCredentialError,
    IdentityLookupFailedError,
    InputValidationError,
    NotFoundError,
    ConflictError,
    AlreadyRegisteredError,
    StoreUnavailableError,
    error_body,
    http_error_body,
    validation_details,
)

__all__ = [
    'APIError',
    'AuthError',
    'MissingCredentialError',
    'MalformedCredentialError',
    'InvalidCredentialError',
    'IdentityLookupFailedError',
    'InputValidationError',
    'NotFoundError',
    'ConflictError',
    'AlreadyRegisteredError',
    'StoreUnavailableError',
    'error_body',
    'http_error_body',
    'validation_details',
]
