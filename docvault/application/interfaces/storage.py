"""
Blob store port.

Provides the abstract interface for object storage backends so the document
core can switch between the local filesystem and S3 without changes.
"""

from collections.abc import AsyncIterator
from typing import Any, BinaryIO, Protocol


class IBlobStore(Protocol):
    """
    Protocol for blob storage backends.

    Implementations:
    - LocalStorageService: Filesystem storage with atomic writes
    - S3StorageService: AWS S3 or MinIO compatible storage
    """

    provider: str

    async def upload(
        self,
        file_data: BinaryIO,
        storage_ref: str,
        expected_checksum: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Store bytes under ``storage_ref`` after verifying their SHA-256.

        Returns:
            dict: storage_ref, checksum, size, uploaded_at

        Raises:
            StorageChecksumMismatchError: If computed checksum != expected
            StorageAlreadyExistsError: If the ref holds different bytes
            StorageUploadError: If upload fails

        Implementation Notes:
        - Must be idempotent (same checksum = no-op, return existing)
        - Must not leave a partial object behind on failure
        """
        ...

    def download(self, storage_ref: str) -> AsyncIterator[bytes]:
        """
        Stream the blob in chunks.

        Raises:
            StorageNotFoundError: If the blob does not exist
            StorageDownloadError: If reading fails
        """
        ...

    async def delete(self, storage_ref: str) -> bool:
        """Delete the blob. Returns False when it did not exist."""
        ...

    async def exists(self, storage_ref: str) -> bool:
        ...
