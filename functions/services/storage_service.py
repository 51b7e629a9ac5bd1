"""Cloud Storage access for uploaded blueprint PDFs."""

from typing import Optional
import structlog

from firebase_admin import storage
from google.api_core import exceptions as gcp_exceptions
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from config.settings import settings
from config.errors import ClearDeskError, ErrorCode, NotFoundError

logger = structlog.get_logger()

# Transient errors worth retrying
RETRYABLE_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.TooManyRequests,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.GatewayTimeout,
)


class StorageService:
    """Reads files from the project files bucket."""

    def __init__(self, bucket=None, bucket_name: Optional[str] = None):
        self._bucket = bucket
        self._bucket_name = bucket_name or settings.files_bucket

    @property
    def bucket(self):
        """Get storage bucket (lazy initialization)."""
        if self._bucket is None:
            self._bucket = storage.bucket(self._bucket_name)
        return self._bucket

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        reraise=True,
    )
    def _download(self, key: str) -> bytes:
        return self.bucket.blob(key).download_as_bytes()

    async def download_bytes(self, key: str) -> bytes:
        """Download a file.

        Raises:
            NotFoundError: If no file exists under the key.
            ClearDeskError: STORAGE_ERROR on other storage failures.
        """
        try:
            data = self._download(key)
        except gcp_exceptions.NotFound:
            logger.warning("storage_file_not_found", key=key)
            raise NotFoundError("file", key, code=ErrorCode.FILE_NOT_FOUND)
        except Exception as e:
            logger.error("storage_download_failed", key=key, error=str(e))
            raise ClearDeskError(
                code=ErrorCode.STORAGE_ERROR,
                message=f"Failed to download file: {str(e)}",
                details={"key": key}
            )

        logger.info("storage_file_downloaded", key=key, size_bytes=len(data))
        return data
