"""Blob store backed by one S3 bucket (AWS, MinIO, LocalStack)."""

import hashlib
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any, BinaryIO

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from docvault.domain.enums import StorageProvider
from docvault.infrastructure.exceptions import (StorageAlreadyExistsError,
                                                StorageChecksumMismatchError,
                                                StorageDeleteError,
                                                StorageDownloadError,
                                                StorageNotFoundError,
                                                StorageUploadError)
from docvault.shared.telemetry.logging import get_logger
from docvault.shared.utils import utc_now

logger = get_logger(__name__)

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_BACKEND_ERRORS = (ClientError, BotoCoreError)


def _is_missing(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _MISSING_CODES


def _receipt(storage_ref: str, checksum: str, size: int, stored_at: datetime) -> dict[str, Any]:
    return {
        "storage_ref": storage_ref,
        "checksum": checksum,
        "size": size,
        "uploaded_at": stored_at.isoformat(),
    }


class S3StorageService:
    """
    One object per storage ref, encrypted at rest with AES256.

    The payload's SHA-256 is kept in the object metadata under ``sha256``.
    A second upload to an existing key is accepted only when that digest
    matches, in which case nothing is sent.
    """

    CHUNK_SIZE = 64 * 1024

    provider = StorageProvider.S3.value

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
    ):
        # Credentials left as None fall through to the default AWS chain
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.session = aioboto3.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    def _client(self):
        return self.session.client("s3", endpoint_url=self.endpoint_url)

    async def _head(self, s3, storage_ref: str) -> dict[str, Any] | None:
        try:
            return await s3.head_object(Bucket=self.bucket, Key=storage_ref)
        except ClientError as e:
            if _is_missing(e):
                return None
            raise

    async def upload(
        self,
        file_data: BinaryIO,
        storage_ref: str,
        expected_checksum: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Store the payload under storage_ref.

        The digest is verified locally before any request is made.

        Raises:
            StorageChecksumMismatchError: payload does not hash to expected_checksum
            StorageAlreadyExistsError: the key holds different bytes
            StorageUploadError: the bucket rejected or failed the request
        """
        payload = file_data.read()
        checksum = hashlib.sha256(payload).hexdigest()
        if checksum != expected_checksum:
            raise StorageChecksumMismatchError(storage_ref, expected_checksum, checksum)

        # User metadata keys travel as x-amz-meta-* headers
        object_metadata = {"sha256": checksum, "original-size": str(len(payload))}
        for key, value in (metadata or {}).items():
            object_metadata[key.lower().replace("_", "-")] = value

        try:
            async with self._client() as s3:
                head = await self._head(s3, storage_ref)
                if head is not None:
                    if head.get("Metadata", {}).get("sha256") != checksum:
                        raise StorageAlreadyExistsError(storage_ref)
                    return _receipt(storage_ref, checksum, head["ContentLength"], head["LastModified"])

                await s3.put_object(
                    Bucket=self.bucket,
                    Key=storage_ref,
                    Body=payload,
                    ContentType=content_type,
                    ServerSideEncryption="AES256",
                    Metadata=object_metadata,
                )
        except _BACKEND_ERRORS as e:
            raise StorageUploadError(storage_ref, str(e)) from e

        logger.debug("Put s3://%s/%s (%d bytes)", self.bucket, storage_ref, len(payload))
        return _receipt(storage_ref, checksum, len(payload), utc_now())

    async def download(self, storage_ref: str) -> AsyncIterator[bytes]:
        """
        Stream the object body in CHUNK_SIZE pieces.

        Raises:
            StorageNotFoundError: no such key
            StorageDownloadError: any other failure while reading
        """
        try:
            async with self._client() as s3:
                try:
                    response = await s3.get_object(Bucket=self.bucket, Key=storage_ref)
                except ClientError as e:
                    if _is_missing(e):
                        raise StorageNotFoundError(storage_ref) from e
                    raise

                async with response["Body"] as body:
                    chunk = await body.read(self.CHUNK_SIZE)
                    while chunk:
                        yield chunk
                        chunk = await body.read(self.CHUNK_SIZE)
        except StorageNotFoundError:
            raise
        except Exception as e:
            raise StorageDownloadError(storage_ref, str(e)) from e

    async def delete(self, storage_ref: str) -> bool:
        """False when the key was already gone"""
        try:
            async with self._client() as s3:
                if await self._head(s3, storage_ref) is None:
                    return False
                await s3.delete_object(Bucket=self.bucket, Key=storage_ref)
        except _BACKEND_ERRORS as e:
            raise StorageDeleteError(storage_ref, str(e)) from e
        return True

    async def exists(self, storage_ref: str) -> bool:
        try:
            async with self._client() as s3:
                return await self._head(s3, storage_ref) is not None
        except _BACKEND_ERRORS as e:
            raise StorageDownloadError(storage_ref, str(e)) from e
