"""
Registration Module

One conference registration per authenticated user, stored in the
registrations collection of the document store.
"""

from .models import (
    PaymentStatus,
    Registration,
    RegistrationInput,
    RegistrationPatch,
)
from .service import RegistrationStore, SubjectLocks

__all__ = [
    'PaymentStatus',
    'Registration',
    'RegistrationInput',
    'RegistrationPatch',
    'RegistrationStore',
    'SubjectLocks',
]
