"""
NoteKeeper Backend — Local Filesystem Blob Store
==================================================

What:  BlobStore implementation that keeps note images on a local volume.
How:   Writes payloads with aiofiles under STORAGE_ROOT/<folder>/<uuid><ext>,
       returns "<folder>/<uuid>" as the identifier and a /files/... URL as
       the locator. GET /files/{path} serves the stored files.
Who:   Default backend for development and single-host deployments.

Directory Structure:
    storage/
    └── notes_app/
        ├── 3f2a9c...e1.jpg
        └── 9b41d0...7a.png

Identifier rules:
    Identifiers are "<folder>/<32 hex chars>". Anything that does not match
    the identifier pattern or resolves outside STORAGE_ROOT cannot name a blob
    we wrote, so delete() treats it as already absent.
"""

import asyncio
import logging
import re
import uuid
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os

from notekeeper.config import Settings
from notekeeper.exceptions import DependencyUnavailableError
from notekeeper.services.blob_store import BlobStore, ImageReference

logger = logging.getLogger(__name__)

# MIME type → file extension written to disk
EXTENSIONS_BY_MIME = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_\-]+(/[A-Za-z0-9_\-]+)*$")


class LocalBlobStore(BlobStore):
    """Stores images as files under a root directory."""

    def __init__(
        self,
        storage_root: str,
        public_base_url: str,
        timeout_seconds: float = 30.0,
    ):
        """
        Args:
            storage_root: Directory that holds every stored image.
            public_base_url: Base URL prepended to "/files/<path>" locators.
            timeout_seconds: Upper bound for each write/delete.
        """
        self.storage_root = Path(storage_root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalBlobStore initialized with storage_root=%s", self.storage_root)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalBlobStore":
        return cls(
            storage_root=settings.storage_root,
            public_base_url=settings.public_base_url,
            timeout_seconds=settings.blob_timeout_seconds,
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _extension_for(filename: Optional[str], content_type: Optional[str]) -> str:
        if content_type and content_type.lower() in EXTENSIONS_BY_MIME:
            return EXTENSIONS_BY_MIME[content_type.lower()]
        if filename:
            suffix = Path(filename).suffix.lower()
            if suffix in EXTENSIONS_BY_MIME.values() or suffix == ".jpeg":
                return ".jpg" if suffix == ".jpeg" else suffix
        return ".bin"

    @staticmethod
    def _normalize_folder(folder: str) -> str:
        parts = [p for p in folder.strip("/").split("/") if p]
        normalized = "/".join(parts)
        if not normalized or not _IDENTIFIER_RE.match(normalized):
            raise ValueError(f"Invalid upload folder '{folder}'")
        return normalized

    def _matching_files(self, public_id: str) -> List[Path]:
        """
        Files stored under `public_id` (any extension).

        Runs in a worker thread: resolve() and glob() hit the filesystem.
        Identifiers that cannot name a blob we wrote match nothing.
        """
        if not _IDENTIFIER_RE.match(public_id):
            return []
        stem = (self.storage_root / public_id).resolve()
        if not stem.is_relative_to(self.storage_root) or not stem.parent.is_dir():
            return []
        return [p for p in stem.parent.glob(f"{stem.name}.*") if p.is_file()]

    def _existing_file(self, relative_path: str) -> Optional[Path]:
        full_path = (self.storage_root / relative_path).resolve()
        if not full_path.is_relative_to(self.storage_root) or not full_path.is_file():
            return None
        return full_path

    def locator_for(self, relative_path: str) -> str:
        return f"{self.public_base_url}/files/{relative_path}"

    # ── BlobStore API ─────────────────────────────────────────────────────

    async def upload(
        self,
        payload: bytes,
        folder: str,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> ImageReference:
        public_id = f"{self._normalize_folder(folder)}/{uuid.uuid4().hex}"
        extension = self._extension_for(filename, content_type)
        relative_path = f"{public_id}{extension}"
        absolute_path = self.storage_root / relative_path

        try:
            await asyncio.wait_for(self._write(absolute_path, payload), self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error("Timed out storing blob %s after %.1fs", relative_path, self.timeout_seconds)
            raise DependencyUnavailableError(
                message="Image storage timed out. Please try again.",
                dependency="blob_store",
                context={"public_id": public_id},
            )
        except OSError as e:
            logger.error("Failed to store blob at %s: %s", absolute_path, str(e))
            raise DependencyUnavailableError(
                message="Failed to save uploaded image. Please try again.",
                dependency="blob_store",
                context={"public_id": public_id, "os_error": str(e)},
            )

        logger.info("Blob stored: %s (%d bytes)", relative_path, len(payload))
        return ImageReference(public_id=public_id, url=self.locator_for(relative_path))

    @staticmethod
    async def _write(path: Path, payload: bytes) -> None:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(payload)

    async def _remove_all(self, public_id: str) -> int:
        matches = await asyncio.to_thread(self._matching_files, public_id)
        removed = 0
        for path in matches:
            try:
                await aiofiles.os.remove(path)
                removed += 1
            except FileNotFoundError:
                continue
        return removed

    async def delete(self, public_id: str) -> None:
        # The extension is not part of the identifier; every stem.* file goes
        try:
            removed = await asyncio.wait_for(self._remove_all(public_id), self.timeout_seconds)
        except asyncio.TimeoutError:
            raise DependencyUnavailableError(
                message="Image deletion timed out.",
                dependency="blob_store",
                context={"public_id": public_id},
            )
        except OSError as e:
            logger.error("Failed to delete blob %s: %s", public_id, str(e))
            raise DependencyUnavailableError(
                message="Failed to delete stored image.",
                dependency="blob_store",
                context={"public_id": public_id, "os_error": str(e)},
            )

        if removed:
            logger.info("Blob deleted: %s", public_id)
        else:
            logger.debug("Delete: no stored blob for %r", public_id)

    async def health_check(self) -> bool:
        return await aiofiles.os.path.isdir(self.storage_root)

    async def resolve_file(self, relative_path: str) -> Optional[Path]:
        """
        Resolve a /files/{path} request to a stored file.

        Returns None when the path escapes STORAGE_ROOT or no such file exists.
        """
        return await asyncio.to_thread(self._existing_file, relative_path)
