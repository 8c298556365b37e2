"""
Cloudflare R2 / S3-compatible storage client.

Uses boto3 with the S3-compatible API. Objects are written under a
public CDN base (R2_PUBLIC_URL), so every stored object has a permanent URL:

    {r2_public_url}/{folder}/{filename}

boto3 is synchronous; async callers run these methods in a worker thread.
"""
import logging
from typing import Optional
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object cannot be written to storage."""


class R2Client:
    """
    S3-compatible client for Cloudflare R2.

    Fails gracefully if not configured: is_configured is False and writes
    raise StorageError.
    """

    def __init__(self, client=None, bucket: Optional[str] = None, public_url: Optional[str] = None):
        """
        Initialize R2 client with boto3.

        Args:
            client: Optional pre-built S3 client (tests inject a stub)
            bucket: Bucket override (defaults to settings)
            public_url: CDN base override (defaults to settings)
        """
        self._client = client
        self._bucket = bucket or settings.r2_bucket
        self._public_url = (public_url or settings.r2_public_url or "").rstrip("/")
        self._configured = client is not None

        if client is not None:
            return

        if not all([
            settings.r2_endpoint,
            settings.r2_access_key,
            settings.r2_secret_key
        ]):
            logger.warning(
                "R2 storage not configured. "
                "Set R2_ENDPOINT, R2_ACCESS_KEY, and R2_SECRET_KEY."
            )
            return

        try:
            # R2 needs s3v4 signatures and path-style addressing
            self._client = boto3.client(
                's3',
                endpoint_url=settings.r2_endpoint,
                aws_access_key_id=settings.r2_access_key,
                aws_secret_access_key=settings.r2_secret_key,
                region_name=settings.r2_region,
                config=Config(
                    signature_version='s3v4',
                    s3={'addressing_style': 'path'}
                )
            )
            self._configured = True
            logger.info(f"R2 client initialized for bucket: {self._bucket}")
        except (BotoCoreError, ValueError) as e:
            logger.error(f"Failed to initialize R2 client: {e}")

    @property
    def is_configured(self) -> bool:
        """Check if R2 client is properly configured."""
        return self._configured and self._client is not None and bool(self._public_url)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def public_url(self) -> str:
        return self._public_url

    @staticmethod
    def object_key(folder: str, filename: str) -> str:
        """Build the object key for a folder/filename pair."""
        folder = folder.strip("/")
        return f"{folder}/{filename}" if folder else filename

    def url_for(self, object_key: str) -> str:
        """Permanent public URL for an object key."""
        return f"{self._public_url}/{object_key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """
        Object key for a URL under our public base.

        Returns None for anything else (e.g. a provider URL kept on a
        degraded asset), so callers never delete foreign objects.
        """
        if not self._public_url or not url.startswith(self._public_url + "/"):
            return None
        return url[len(self._public_url) + 1:]

    def upload_bytes(self, data: bytes, folder: str, filename: str, content_type: str) -> str:
        """
        Write bytes to the bucket.

        Returns:
            Permanent public URL of the stored object

        Raises:
            StorageError: If storage is not configured or the write fails
        """
        if not self.is_configured:
            raise StorageError("R2 storage not configured")

        object_key = self.object_key(folder, filename)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=object_key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload {object_key}: {e}") from e

        logger.debug(f"Uploaded {object_key} ({len(data)} bytes)")
        return self.url_for(object_key)

    def delete_object(self, object_key: str) -> bool:
        """
        Delete an object from the bucket.

        Returns:
            True if deletion was successful (or object was already gone)
        """
        if not self.is_configured:
            logger.warning(f"Cannot delete object {object_key}: R2 not configured")
            return False

        try:
            self._client.delete_object(Bucket=self._bucket, Key=object_key)
            logger.debug(f"Deleted object {object_key} from R2")
            return True
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey'):
                logger.debug(f"Object {object_key} not found in R2 (already deleted)")
                return True
            logger.error(f"Failed to delete object {object_key} from R2: {e}")
            return False
        except BotoCoreError as e:
            logger.error(f"Unexpected error deleting object {object_key} from R2: {e}")
            return False


# Singleton instance
_r2_client: Optional[R2Client] = None


def get_r2_client() -> R2Client:
    """
    Get the singleton R2 client instance.

    Returns:
        R2Client instance (may or may not be configured)
    """
    global _r2_client
    if _r2_client is None:
        _r2_client = R2Client()
    return _r2_client
