"""Blob store rooted in a directory on the local filesystem."""

import hashlib
import json
import os
import tempfile
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, BinaryIO

import aiofiles
import aiofiles.os

from docvault.domain.enums import StorageProvider
from docvault.infrastructure.exceptions import (StorageAlreadyExistsError,
                                                StorageChecksumMismatchError,
                                                StorageDeleteError,
                                                StorageDownloadError,
                                                StorageNotFoundError,
                                                StoragePermissionError,
                                                StorageUploadError)
from docvault.shared.telemetry.logging import get_logger
from docvault.shared.utils import utc_now

logger = get_logger(__name__)

FILE_MODE = 0o640
DIR_MODE = 0o750


class LocalStorageService:
    """
    Blobs live at ``{storage_root}/{storage_ref}``.

    A ref is either absent or complete: bytes are streamed into a hidden
    file beside the target and renamed over it only after their SHA-256
    matches. Next to every blob sits a ``.meta.json`` sidecar recording the
    digest, size, content type, store time and caller metadata.
    """

    CHUNK_SIZE = 64 * 1024
    SIDECAR_SUFFIX = ".meta.json"

    provider = StorageProvider.LOCAL.value

    def __init__(self, storage_root: str) -> None:
        self.storage_root = Path(storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True, mode=DIR_MODE)

    def resolve(self, storage_ref: str, operation: str) -> Path:
        """Absolute path for a ref; refs escaping the root are refused"""
        path = (self.storage_root / storage_ref).resolve()
        if not path.is_relative_to(self.storage_root):
            raise StoragePermissionError(storage_ref, operation)
        return path

    def sidecar(self, path: Path) -> Path:
        return path.with_name(path.name + self.SIDECAR_SUFFIX)

    async def read_sidecar(self, path: Path) -> dict[str, Any]:
        sidecar = self.sidecar(path)
        if not sidecar.is_file():
            return {}
        async with aiofiles.open(sidecar, "r") as f:
            record = json.loads(await f.read())
        return record if isinstance(record, dict) else {}

    async def _write_sidecar(self, path: Path, record: dict[str, Any]) -> None:
        sidecar = self.sidecar(path)
        async with aiofiles.open(sidecar, "w") as f:
            await f.write(json.dumps(record, indent=2))
        os.chmod(sidecar, FILE_MODE)

    async def _digest(self, path: Path) -> str:
        digest = hashlib.sha256()
        async with aiofiles.open(path, "rb") as f:
            chunk = await f.read(self.CHUNK_SIZE)
            while chunk:
                digest.update(chunk)
                chunk = await f.read(self.CHUNK_SIZE)
        return digest.hexdigest()

    async def _write_verified(
        self, file_data: BinaryIO, path: Path, storage_ref: str, expected_checksum: str
    ) -> int:
        """Copy file_data to path if it hashes to expected_checksum; returns the size"""
        fd, staging_name = tempfile.mkstemp(dir=path.parent, prefix=".incoming-")
        os.close(fd)
        staging = Path(staging_name)
        digest = hashlib.sha256()
        size = 0
        try:
            async with aiofiles.open(staging, "wb") as out:
                chunk = file_data.read(self.CHUNK_SIZE)
                while chunk:
                    digest.update(chunk)
                    size += len(chunk)
                    await out.write(chunk)
                    chunk = file_data.read(self.CHUNK_SIZE)

            if digest.hexdigest() != expected_checksum:
                raise StorageChecksumMismatchError(storage_ref, expected_checksum, digest.hexdigest())

            os.chmod(staging, FILE_MODE)
            os.replace(staging, path)
        finally:
            if staging.exists():
                staging.unlink()
        return size

    async def upload(
        self,
        file_data: BinaryIO,
        storage_ref: str,
        expected_checksum: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Store file_data under storage_ref.

        Re-sending the bytes a ref already holds returns the original
        receipt; different bytes raise StorageAlreadyExistsError.
        """
        path = self.resolve(storage_ref, "upload")

        try:
            if path.is_file():
                checksum = await self._digest(path)
                if checksum != expected_checksum:
                    raise StorageAlreadyExistsError(storage_ref)
                record = await self.read_sidecar(path)
                return {
                    "storage_ref": storage_ref,
                    "checksum": checksum,
                    "size": path.stat().st_size,
                    "uploaded_at": record.get("uploaded_at", utc_now().isoformat()),
                }

            path.parent.mkdir(parents=True, exist_ok=True, mode=DIR_MODE)
            size = await self._write_verified(file_data, path, storage_ref, expected_checksum)
            record = {
                "storage_ref": storage_ref,
                "checksum": expected_checksum,
                "size": size,
                "content_type": content_type,
                "uploaded_at": utc_now().isoformat(),
                "custom": metadata or {},
            }
            await self._write_sidecar(path, record)
        except OSError as e:
            raise StorageUploadError(storage_ref, str(e)) from e

        logger.debug("Wrote %s (%d bytes)", storage_ref, size)
        return {key: record[key] for key in ("storage_ref", "checksum", "size", "uploaded_at")}

    async def download(self, storage_ref: str) -> AsyncIterator[bytes]:
        path = self.resolve(storage_ref, "download")
        if not path.is_file():
            raise StorageNotFoundError(storage_ref)

        try:
            async with aiofiles.open(path, "rb") as f:
                chunk = await f.read(self.CHUNK_SIZE)
                while chunk:
                    yield chunk
                    chunk = await f.read(self.CHUNK_SIZE)
        except OSError as e:
            raise StorageDownloadError(storage_ref, str(e)) from e

    async def delete(self, storage_ref: str) -> bool:
        """Remove the blob and its sidecar; False when there was nothing to remove"""
        path = self.resolve(storage_ref, "delete")
        if not path.is_file():
            return False

        try:
            await aiofiles.os.remove(path)
            sidecar = self.sidecar(path)
            if sidecar.exists():
                await aiofiles.os.remove(sidecar)
        except OSError as e:
            raise StorageDeleteError(storage_ref, str(e)) from e

        self._prune(path.parent)
        return True

    def _prune(self, directory: Path) -> None:
        """Drop directories left empty, stopping at the storage root"""
        while directory != self.storage_root:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent

    async def exists(self, storage_ref: str) -> bool:
        return self.resolve(storage_ref, "exists").is_file()
