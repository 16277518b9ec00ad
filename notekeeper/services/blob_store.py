"""
NoteKeeper Backend — Abstract Blob Store Interface
====================================================

What:  Abstract base class for the external image-hosting service, plus the
       ImageReference value it hands back and the factory that builds the
       configured implementation.
How:   Concrete stores inherit from BlobStore and implement upload()/delete().
Who:   Called by NoteService; built once by the app factory and injected.

Implementations:
    - LocalBlobStore:       files under STORAGE_ROOT, served by GET /files/...
    - CloudinaryBlobStore:  Cloudinary upload/destroy via the cloudinary SDK

Contract shared by every implementation:
    - upload() returns a fresh ImageReference or raises
      DependencyUnavailableError; it never returns a partial result.
    - delete() of an identifier that does not exist is a success.
    - Provider, network and timeout failures are wrapped in
      DependencyUnavailableError(dependency="blob_store").
    - Nothing is retried.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from notekeeper.config import Settings


@dataclass(frozen=True)
class ImageReference:
    """
    Attachment Reference produced by a successful upload.

    public_id is stable for the life of the blob; url may be re-signed by
    the provider and is not used as a key.
    """
    public_id: str
    url: str


class BlobStore(ABC):
    """Interface for storing and deleting note images in external storage."""

    @abstractmethod
    async def upload(
        self,
        payload: bytes,
        folder: str,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> ImageReference:
        """
        Store `payload` under `folder` and return its reference.

        Args:
            payload: Raw image bytes (already validated by the caller).
            folder: Destination folder / prefix, e.g. "notes_app".
            filename: Original client filename (used for the extension only).
            content_type: MIME type reported by the client.

        Raises:
            DependencyUnavailableError: upload failed or timed out.
        """
        ...

    @abstractmethod
    async def delete(self, public_id: str) -> None:
        """
        Delete the blob identified by `public_id`.

        Succeeds when the blob is already gone.

        Raises:
            DependencyUnavailableError: any other provider failure.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the store is reachable."""
        ...

    async def close(self) -> None:
        """Release network resources. Called on application shutdown."""
        return None


def build_blob_store(settings: Settings) -> BlobStore:
    """
    Construct the blob store selected by `settings.blob_backend`.

    Called by the app factory; the result is stored on `app.state` and
    handed to request handlers through `get_blob_store`.
    """
    if settings.blob_backend == "cloudinary":
        from notekeeper.services.cloudinary_blob_store import CloudinaryBlobStore
        return CloudinaryBlobStore.from_settings(settings)

    from notekeeper.services.local_blob_store import LocalBlobStore
    return LocalBlobStore.from_settings(settings)
