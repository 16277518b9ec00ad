"""
NoteKeeper Backend — Cloudinary Blob Store
============================================

What:  BlobStore implementation backed by Cloudinary.
How:   Calls the official `cloudinary` SDK (uploader.upload, uploader.destroy,
       api.ping). The SDK is synchronous, so every call runs in a worker
       thread via asyncio.to_thread and is bounded by asyncio.wait_for.
Who:   Selected with BLOB_BACKEND=cloudinary; built by the app factory.

Credentials are passed per call instead of through cloudinary.config(), so
the process-wide SDK configuration is never mutated.

Delete semantics:
    uploader.destroy answers {"result": "ok"} or {"result": "not found"}.
    Both are success for the caller. Anything else raises
    DependencyUnavailableError.

Failures:
    cloudinary.exceptions.Error (provider rejection, network/socket errors
    wrapped by the SDK) and timeouts surface as DependencyUnavailableError.
"""

import asyncio
import io
import logging
import time
from typing import Any, Callable, Dict, Optional

import cloudinary
import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader

from notekeeper.config import Settings
from notekeeper.exceptions import DependencyUnavailableError
from notekeeper.services.blob_store import BlobStore, ImageReference

logger = logging.getLogger(__name__)

# Results of uploader.destroy that mean "the blob is gone"
DELETED_RESULTS = {"ok", "not found"}


class CloudinaryBlobStore(BlobStore):
    """Uploads and deletes note images on Cloudinary."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout_seconds: float = 30.0,
    ):
        self.cloud_name = cloud_name
        self.credentials = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
        }
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryBlobStore":
        logger.info(
            "CloudinaryBlobStore initialized for cloud=%s (timeout=%.1fs)",
            settings.cloudinary_cloud_name,
            settings.blob_timeout_seconds,
        )
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            timeout_seconds=settings.blob_timeout_seconds,
        )

    async def _call(
        self,
        operation: str,
        func: Callable[..., Dict[str, Any]],
        *args: Any,
        **options: Any,
    ) -> Dict[str, Any]:
        """Run one SDK call off the event loop and translate its failures."""
        start_time = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    func,
                    *args,
                    timeout=self.timeout_seconds,
                    **self.credentials,
                    **options,
                ),
                self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("Cloudinary %s timed out after %.1fs", operation, self.timeout_seconds)
            raise DependencyUnavailableError(
                message="Image storage service timed out. Please try again.",
                dependency="blob_store",
                context={"operation": operation},
            )
        except cloudinary.exceptions.Error as e:
            logger.error("Cloudinary %s failed: %s", operation, str(e))
            raise DependencyUnavailableError(
                message="Image storage service rejected the request.",
                dependency="blob_store",
                context={
                    "operation": operation,
                    "error_type": type(e).__name__,
                    "provider_message": str(e),
                },
            )

        logger.debug(
            "Cloudinary %s completed in %.0fms",
            operation,
            (time.perf_counter() - start_time) * 1000,
        )
        return result if isinstance(result, dict) else {}

    async def upload(
        self,
        payload: bytes,
        folder: str,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> ImageReference:
        body = await self._call(
            "upload",
            cloudinary.uploader.upload,
            io.BytesIO(payload),
            folder=folder,
            resource_type="image",
            filename=filename or "upload",
        )

        public_id = body.get("public_id")
        url = body.get("secure_url") or body.get("url")
        if not public_id or not url:
            raise DependencyUnavailableError(
                message="Image storage service returned an incomplete response.",
                dependency="blob_store",
                context={"operation": "upload", "keys": sorted(body)},
            )

        logger.info("Blob uploaded: %s (%d bytes)", public_id, len(payload))
        return ImageReference(public_id=public_id, url=url)

    async def delete(self, public_id: str) -> None:
        body = await self._call(
            "destroy",
            cloudinary.uploader.destroy,
            public_id,
            resource_type="image",
        )
        result = body.get("result")
        if result not in DELETED_RESULTS:
            raise DependencyUnavailableError(
                message="Image storage service could not delete the image.",
                dependency="blob_store",
                context={"operation": "destroy", "public_id": public_id, "result": result},
            )
        logger.info("Blob deleted: %s (result=%s)", public_id, result)

    async def health_check(self) -> bool:
        try:
            body = await self._call("ping", cloudinary.api.ping)
        except DependencyUnavailableError as e:
            logger.warning("Cloudinary health check failed: %s", e.message)
            return False
        return body.get("status") == "ok"
