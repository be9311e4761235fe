"""Shared fixtures for domain-identity tests."""

from __future__ import annotations

import pytest

from oblivio.domain.identity.infrastructure.identity_provider_client import (
    IdentityProviderClient,
)
from oblivio.domain.identity.infrastructure.identity_registry import IdentityRegistry
from oblivio.infra.persistence.memory_store import InMemoryDocumentStore


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def registry(store: InMemoryDocumentStore) -> IdentityRegistry:
    """Registry with one mapping: ext_42 -> user-42."""
    reg = IdentityRegistry(store)
    reg.register("ext_42", "user-42")
    return reg


@pytest.fixture()
def idp_client() -> IdentityProviderClient:
    return IdentityProviderClient(
        base_url="https://idp.example.com/",
        secret_key="sk_test",
        timeout=5.0,
    )
