"""
Storage utilities.

Supabase Storage operations for B-roll clips, voice-overs and rendered
variants.
"""

import asyncio
import mimetypes
from typing import Optional, Dict, Any, Callable
from supabase import create_client
from shared.config import settings
from shared.errors import RetryableError, ConfigError, ValidationError
from shared.retry import retry_with_backoff
from shared.logging import get_logger

logger = get_logger("storage")

# Default file size limits per bucket (in bytes)
DEFAULT_BUCKET_LIMITS: Dict[str, int] = {
    "broll": 200 * 1024 * 1024,  # 200MB
    "voiceovers": 20 * 1024 * 1024,  # 20MB
    "renders": 500 * 1024 * 1024,  # 500MB
}

# .srt is not in the stdlib mimetypes table
_EXTRA_CONTENT_TYPES = {
    ".srt": "application/x-subrip",
}


class StorageClient:
    """Supabase Storage client for file operations."""

    def __init__(self, bucket_limits: Optional[Dict[str, int]] = None):
        """
        Initialize storage client.

        Args:
            bucket_limits: Optional dict of bucket name to max file size in bytes
        """
        self._storage = None
        self.bucket_limits = bucket_limits or DEFAULT_BUCKET_LIMITS.copy()

    @property
    def storage(self):
        if self._storage is None:
            try:
                client = create_client(
                    settings.supabase_url,
                    settings.supabase_service_key
                )
                self._storage = client.storage
            except Exception as e:
                raise ConfigError(f"Failed to initialize storage client: {str(e)}") from e
        return self._storage

    async def _execute_sync(self, func: Callable[[], Any]) -> Any:
        """Execute a synchronous Supabase storage operation in an async context."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    def _detect_content_type(self, path: str, default: Optional[str] = None) -> str:
        """Detect content type from file path."""
        for suffix, content_type in _EXTRA_CONTENT_TYPES.items():
            if path.lower().endswith(suffix):
                return content_type
        content_type, _ = mimetypes.guess_type(path)
        if content_type:
            return content_type
        return default or "application/octet-stream"

    @retry_with_backoff(max_attempts=3, base_delay=2)
    async def upload_file(
        self,
        bucket: str,
        path: str,
        file_data: bytes,
        content_type: Optional[str] = None,
        max_size: Optional[int] = None
    ) -> str:
        """
        Upload (or overwrite) a file in Supabase Storage.

        Args:
            bucket: Storage bucket name
            path: File path in bucket
            file_data: File data as bytes
            content_type: Content type (auto-detected if not provided)
            max_size: Maximum file size in bytes (uses bucket default if not provided)

        Returns:
            The storage path of the uploaded file. Consumers resolve it to a
            signed URL when they need one.

        Raises:
            RetryableError: If upload fails after retries
            ValidationError: If file size exceeds limit
        """
        try:
            if not content_type:
                content_type = self._detect_content_type(path)

            max_size = max_size or self.bucket_limits.get(bucket, 10 * 1024 * 1024)
            if len(file_data) > max_size:
                max_size_mb = max_size / (1024 * 1024)
                file_size_mb = len(file_data) / (1024 * 1024)
                raise ValidationError(
                    f"File size ({file_size_mb:.2f} MB) exceeds maximum of {max_size_mb:.2f} MB for bucket {bucket}"
                )

            def _upload():
                return self.storage.from_(bucket).upload(
                    path=path,
                    file=file_data,
                    file_options={"content-type": content_type, "upsert": "true"}
                )

            await self._execute_sync(_upload)

            logger.info(
                f"Uploaded file to {bucket}/{path}",
                extra={"bucket": bucket, "path": path, "size": len(file_data)}
            )
            return path

        except ValidationError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to upload file to {bucket}/{path}: {str(e)}",
                extra={"bucket": bucket, "path": path, "error": str(e)}
            )
            raise RetryableError(f"Failed to upload file: {str(e)}") from e

    async def get_signed_url(
        self,
        bucket: str,
        path: str,
        expires_in: Optional[int] = None
    ) -> str:
        """
        Generate a signed URL for a file.

        Args:
            bucket: Storage bucket name
            path: File path in bucket
            expires_in: Expiration time in seconds (default: settings.signed_url_ttl_seconds)

        Returns:
            Signed URL

        Raises:
            RetryableError: If URL generation fails or returns nothing
        """
        expires_in = expires_in or settings.signed_url_ttl_seconds
        try:
            def _create_signed_url():
                return self.storage.from_(bucket).create_signed_url(
                    path=path,
                    expires_in=expires_in
                )

            response = await self._execute_sync(_create_signed_url)
        except Exception as e:
            logger.error(
                f"Failed to generate signed URL for {bucket}/{path}: {str(e)}",
                extra={"bucket": bucket, "path": path, "error": str(e)}
            )
            raise RetryableError(f"Failed to generate signed URL: {str(e)}") from e

        signed_url = response.get("signedURL") or response.get("signedUrl") or ""
        if not signed_url:
            raise RetryableError(f"Empty signed URL returned for {bucket}/{path}")

        logger.debug(
            f"Generated signed URL for {bucket}/{path}",
            extra={"bucket": bucket, "path": path, "expires_in": expires_in}
        )
        return signed_url
