"""Unit tests for the storage sweeper."""

from __future__ import annotations

import pytest

from oblivio.domain.erasure.manifest import DeletionManifest, TableDeletionConfig
from oblivio.domain.erasure.sweeper import StorageSweeper, is_managed_blob_reference
from oblivio.infra.persistence.memory_store import InMemoryBlobStore, InMemoryDocumentStore


@pytest.mark.unit
class TestIsManagedBlobReference:
    @pytest.mark.parametrize("value", ["blob-1", "kg2abc", "  blob-2  "])
    def test_managed(self, value: str) -> None:
        assert is_managed_blob_reference(value)

    @pytest.mark.parametrize(
        "value",
        ["https://cdn.example.com/a.png", "HTTP://x", "data:image/png;base64,AA", "", "   ", None, 42],
    )
    def test_not_managed(self, value: object) -> None:
        assert not is_managed_blob_reference(value)


@pytest.mark.unit
class TestStorageSweeper:
    def test_collects_profile_and_related_blobs(
        self,
        store: InMemoryDocumentStore,
        blobs: InMemoryBlobStore,
        manifest: DeletionManifest,
    ) -> None:
        sweeper = StorageSweeper(store, blobs, manifest)
        user = store.get("users", "user-42")
        # brand logo is an external URL and is skipped
        assert sweeper.collect(user) == ["blob-avatar-42", "blob-t1"]

    def test_sweep_deletes_and_reports(
        self,
        store: InMemoryDocumentStore,
        blobs: InMemoryBlobStore,
        manifest: DeletionManifest,
    ) -> None:
        sweeper = StorageSweeper(store, blobs, manifest)
        deleted = sweeper.sweep(store.get("users", "user-42"))
        assert deleted == ["blob-avatar-42", "blob-t1"]
        assert blobs.blobs == {"blob-other"}

    def test_duplicates_deleted_once(self, blobs: InMemoryBlobStore) -> None:
        store = InMemoryDocumentStore(
            {
                "users": [{"id": "u1", "avatar_url": "blob-a", "brand_logo_url": "blob-a"}],
                "files": [
                    {"id": "f1", "owner": "u1", "attachments": ["blob-a", "blob-b"]},
                    {"id": "f2", "owner": "u1", "attachments": ["blob-b"]},
                ],
            }
        )
        manifest = DeletionManifest(
            cascade={"files": TableDeletionConfig(fields={"owner": "delete"})},
            storage_fields={"users": ["avatar_url", "brand_logo_url"], "files": ["attachments"]},
            default_batch_size=1,
        )
        sweeper = StorageSweeper(store, blobs, manifest)
        assert sweeper.sweep(store.get("users", "u1")) == ["blob-a", "blob-b"]
        assert blobs.deleted == ["blob-a", "blob-b"]

    def test_anonymized_documents_swept(self, blobs: InMemoryBlobStore) -> None:
        store = InMemoryDocumentStore(
            {
                "users": [{"id": "u1"}],
                "reports": [{"id": "r1", "author": "u1", "file_id": "blob-r1"}],
            }
        )
        manifest = DeletionManifest(
            cascade={"reports": TableDeletionConfig(fields={"author": "anonymize"})},
            storage_fields={"reports": ["file_id"]},
        )
        sweeper = StorageSweeper(store, blobs, manifest)
        assert sweeper.collect(store.get("users", "u1")) == ["blob-r1"]

    @pytest.mark.parametrize("disposition", ["reassign", "preserve"])
    def test_reassigned_and_preserved_documents_keep_blobs(
        self, blobs: InMemoryBlobStore, disposition: str
    ) -> None:
        store = InMemoryDocumentStore(
            {
                "users": [{"id": "u1"}],
                "boards": [{"id": "b1", "owner": "u1", "cover_id": "blob-b1"}],
            }
        )
        manifest = DeletionManifest(
            cascade={"boards": TableDeletionConfig(fields={"owner": disposition})},
            storage_fields={"boards": ["cover_id"]},
        )
        sweeper = StorageSweeper(store, blobs, manifest)
        assert sweeper.collect(store.get("users", "u1")) == []

    def test_failure_skipped(
        self,
        store: InMemoryDocumentStore,
        manifest: DeletionManifest,
    ) -> None:
        blobs = InMemoryBlobStore(["blob-avatar-42", "blob-t1"], failing_ids=["blob-avatar-42"])
        sweeper = StorageSweeper(store, blobs, manifest)
        assert sweeper.sweep(store.get("users", "user-42")) == ["blob-t1"]
        assert "blob-avatar-42" in blobs.blobs

    def test_user_without_blobs(
        self,
        store: InMemoryDocumentStore,
        blobs: InMemoryBlobStore,
        manifest: DeletionManifest,
    ) -> None:
        sweeper = StorageSweeper(store, blobs, manifest)
        assert sweeper.sweep(store.get("users", "user-7")) == []
