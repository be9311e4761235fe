"""Oblivio Foundation Domain -- pure Python domain primitives.

This package provides the foundational building blocks shared by the
erasure packages: exceptions, user value objects, and port interfaces.
"""

from oblivio.foundation.domain.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from oblivio.foundation.domain.ports import (
    AccountDeletionResult,
    BlobStorePort,
    Document,
    DocumentStorePort,
    IdentityProviderPort,
    IdentityRegistryPort,
)
from oblivio.foundation.domain.user_value_objects import DeletionStatus, UserRank

__all__ = [
    "AccountDeletionResult",
    "AuthorizationError",
    "BlobStorePort",
    "ConflictError",
    "DeletionStatus",
    "Document",
    "DocumentStorePort",
    "DomainError",
    "InvalidStateTransitionError",
    "IdentityProviderPort",
    "IdentityRegistryPort",
    "NotFoundError",
    "UserRank",
    "ValidationError",
]
