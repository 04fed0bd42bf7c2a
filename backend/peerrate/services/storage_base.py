"""
PeerRate Backend - Abstract Object Storage Interface
====================================================

What:  Abstract base class for the blob store that holds profile pictures.
How:   Concrete implementations inherit from ObjectStorage and implement
       put() and health_check().
Who:   UserService.update_profile_picture(); the /health route.

Implementations (peerrate.services.storage_service):
    - S3ObjectStorage:    AWS S3 via aioboto3 (production)
    - LocalObjectStorage: Files below settings.storage_root (development)
"""

from abc import ABC, abstractmethod


class ObjectStorage(ABC):
    """
    Contract:
        - put() stores the bytes under the given key and returns the public
          URL of the stored object
        - put() either succeeds completely or raises StorageError; callers
          update their own state only after it returns
        - keys use forward slashes, e.g. "profile-pictures/<user id>"
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store a blob and return its public URL.

        Args:
            key:          Object key (path inside the bucket / storage root)
            data:         Raw bytes to store
            content_type: MIME type recorded with the object

        Returns:
            The URL clients use to fetch the object.

        Raises:
            StorageError: The backend rejected or failed the write.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability probe. Returns False instead of raising."""
        ...
