"""Domain port interfaces for hexagonal architecture.

Ports define abstract interfaces that the erasure engine uses to interact
with external services. Implementations (adapters) live in infrastructure.
"""

from oblivio.foundation.domain.ports.blob_store import BlobStorePort
from oblivio.foundation.domain.ports.document_store import Document, DocumentStorePort
from oblivio.foundation.domain.ports.identity import (
    AccountDeletionResult,
    IdentityProviderPort,
    IdentityRegistryPort,
)

__all__ = [
    "AccountDeletionResult",
    "BlobStorePort",
    "Document",
    "DocumentStorePort",
    "IdentityProviderPort",
    "IdentityRegistryPort",
]
