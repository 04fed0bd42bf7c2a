"""
PeerRate Backend - Object Storage Implementations
=================================================

What:  S3 and local-disk implementations of ObjectStorage, plus the
       factory that picks one from settings.
How:   S3ObjectStorage issues a single PutObject through aioboto3;
       LocalObjectStorage writes the bytes with aiofiles below
       settings.storage_root.
Who:   Built once in main.py's lifespan and handed to UserService.

Key layout:
    profile-pictures/<user id>      (one object per user, overwritten on upload)

URL layout:
    S3:    https://<bucket>.s3.<region>.amazonaws.com/<key>
    local: <public_base_url>/api/files/<key>
"""

import logging
from pathlib import Path
from typing import Optional

import aioboto3
import aiofiles
from botocore.exceptions import BotoCoreError, ClientError

from peerrate.config import settings
from peerrate.exceptions import StorageError
from peerrate.services.storage_base import ObjectStorage

logger = logging.getLogger(__name__)


class S3ObjectStorage(ObjectStorage):
    """
    AWS S3 backend.

    A fresh client is opened per call from a shared aioboto3.Session;
    aioboto3 clients are async context managers bound to one event loop.
    Empty credentials fall back to the default AWS credential chain
    (environment, instance profile).
    """

    def __init__(
        self,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.bucket = bucket
        self.region = region
        self.session = aioboto3.Session(
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            region_name=region,
        )
        logger.info("S3ObjectStorage initialized with bucket=%s region=%s", bucket, region)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            async with self.session.client("s3") as s3:
                await s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                )
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload failed for %s/%s: %s", self.bucket, key, str(e))
            raise StorageError(
                context={"bucket": self.bucket, "key": key, "error_type": type(e).__name__},
            )

        logger.info("Uploaded %s to s3://%s (%d bytes)", key, self.bucket, len(data))
        return self.public_url(key)

    async def health_check(self) -> bool:
        try:
            async with self.session.client("s3") as s3:
                await s3.head_bucket(Bucket=self.bucket)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 health check failed: %s", str(e))
            return False


class LocalObjectStorage(ObjectStorage):
    """
    Development backend writing below a local directory.

    Directory Structure:
        storage/
        └── profile-pictures/
            ├── 3f0c9a4e-...   (no extension; the /api/files route sniffs the type)
            └── 9b1d77c2-...

    Keys never contain user-supplied text (only user UUIDs), and
    resolve_path() refuses anything that would land outside the root.
    """

    def __init__(self, storage_root: Optional[str] = None, public_base_url: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")
        logger.info("LocalObjectStorage initialized with storage_root=%s", self.storage_root)

    def resolve_path(self, key: str) -> Path:
        """
        Map a key to an absolute path inside storage_root.

        Raises:
            StorageError: The key escapes the storage root (e.g. "../x").
        """
        path = (self.storage_root / key).resolve()
        if not path.is_relative_to(self.storage_root):
            raise StorageError(
                message="Invalid storage key",
                context={"key": key},
            )
        return path

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/api/files/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self.resolve_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", path, str(e))
            raise StorageError(context={"key": key, "os_error": str(e)})

        logger.info("File stored: %s (%d bytes, %s)", key, len(data), content_type)
        return self.public_url(key)

    async def health_check(self) -> bool:
        return self.storage_root.is_dir()


def build_object_storage() -> ObjectStorage:
    """Returns the backend named by settings.storage_backend."""
    if settings.storage_backend == "local":
        return LocalObjectStorage()
    return S3ObjectStorage(
        bucket=settings.aws_s3_bucket_name,
        region=settings.aws_region,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
    )
