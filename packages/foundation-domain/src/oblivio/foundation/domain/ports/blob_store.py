"""Port interface for the binary blob store (avatars, uploaded files)."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStorePort(Protocol):
    """Port for deleting managed blobs.

    ``delete`` must tolerate blobs that are already gone: a missing blob is
    not an error condition for the erasure engine. Any other failure may be
    raised and is handled per blob by the caller.
    """

    def delete(self, blob_id: str) -> None:
        """Delete a blob by its managed identifier."""
        ...
