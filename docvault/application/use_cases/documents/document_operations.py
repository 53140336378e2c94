"""
Document operations use case.

Orchestrates the document aggregate: blob storage first, then one database
transaction per operation. Blobs written by a call that fails afterwards are
deleted before the error propagates.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import BinaryIO, TypeVar

from docvault.application.interfaces.identity import IGroupMembershipProvider
from docvault.application.interfaces.storage import IBlobStore
from docvault.application.schemas.document import DocumentUpdate
from docvault.application.services.access_logger import AccessLogger
from docvault.application.services.version_ledger import VersionLedger
from docvault.application.use_cases.documents.base import DocumentUseCase
from docvault.domain.entities import (AccessLogRecord, DocumentEntity,
                                      VersionRecord)
from docvault.domain.enums import AccessAction, PermissionLevel
from docvault.domain.exceptions import ConflictError, VersionConflictError
from docvault.domain.value_objects import (AccessDecision, Actor,
                                           ClientContext, FileMeta,
                                           FileUpload)
from docvault.infrastructure.config.settings import Settings
from docvault.infrastructure.exceptions import (StorageError,
                                                StorageNotFoundError,
                                                StorageTimeoutError)
from docvault.infrastructure.persistence.unit_of_work import AsyncUnitOfWork
from docvault.shared.telemetry.logging import get_logger
from docvault.shared.telemetry.tracing import add_span_attributes, add_span_event, traced
from docvault.shared.utils import generate_cuid, utc_now

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_CONTENT_TYPE = "application/octet-stream"
INITIAL_CHANGE_SUMMARY = "Initial upload"
VERSION_CHANGE_SUMMARY = "Version update"

# Fields that cannot be cleared through an update
_NON_NULLABLE_FIELDS = ("title", "is_favorite", "is_public")


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await anext(chunks)
    except StopAsyncIteration:
        return None


class DocumentService(DocumentUseCase):
    """
    Document aggregate operations.

    Responsibilities:
    - Store each upload under its own blob ref and clean up orphans
    - Append versions through the ledger, retrying number races
    - Gate every read and write through the access resolver
    - Stage audit entries in the same transaction as the change they describe
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        uow_factory: Callable[[], AsyncUnitOfWork],
        blob_store: IBlobStore,
        groups: IGroupMembershipProvider,
        access_logger: AccessLogger,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(uow_factory, groups, access_logger, clock)
        self.storage = blob_store
        self.settings = settings

    def _ledger(self, uow: AsyncUnitOfWork) -> VersionLedger:
        return VersionLedger(uow.documents, uow.versions, clock=self.clock)

    # Blob handling

    def _timeout(self, timeout: float | None) -> float:
        return self.settings.storage_timeout_seconds if timeout is None else timeout

    @staticmethod
    def _generate_storage_ref(document_id: str, checksum: str, extension: str) -> str:
        """
        A ref no other upload can produce.

        Format: documents/{document_id}/{sha256}-{cuid}.{ext}
        """
        suffix = f".{extension}" if extension else ""
        return f"documents/{document_id}/{checksum}-{generate_cuid()}{suffix}"

    def _compute_checksum(self, file_data: BinaryIO) -> tuple[str, int]:
        """SHA-256 hex digest and size; leaves the stream rewound"""
        sha256 = hashlib.sha256()
        size = 0

        file_data.seek(0)
        while True:
            chunk = file_data.read(self.CHUNK_SIZE)
            if not chunk:
                break
            sha256.update(chunk)
            size += len(chunk)
        file_data.seek(0)

        return sha256.hexdigest(), size

    async def _bounded(
        self, awaitable: Awaitable[T], storage_ref: str, operation: str, timeout: float
    ) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as e:
            raise StorageTimeoutError(storage_ref, operation, timeout) from e

    async def _bounded_stream(self, storage_ref: str, timeout: float) -> AsyncIterator[bytes]:
        """Relay the blob stream, bounding each chunk read by ``timeout``"""
        chunks = aiter(self.storage.download(storage_ref))
        while True:
            chunk = await self._bounded(_next_chunk(chunks), storage_ref, "download", timeout)
            if chunk is None:
                return
            yield chunk

    async def _store_blob(
        self, document_id: str, upload: FileUpload, timeout: float
    ) -> tuple[FileMeta, bool]:
        """
        Put the file in the blob store and describe it.

        Bytes that a committed version of the document already points at are
        not stored again; that blob is reused and the second value is False.
        Anything else goes to a fresh ref owned by this call alone, so the
        caller may delete it on failure without touching another version.
        """
        checksum, size = self._compute_checksum(upload.file_data)
        extension = upload.extension

        async with self._uow() as uow:
            committed = await uow.versions.find_by_content_hash(document_id, checksum)
        if committed is not None:
            still_there = await self._bounded(
                self.storage.exists(committed.storage_ref), committed.storage_ref, "exists", timeout
            )
            if still_there:
                logger.debug("Reusing blob %s for document %s", committed.storage_ref, document_id)
                return self._describe(upload, committed.storage_ref, checksum, size,
                                      committed.storage_provider), False

        storage_ref = self._generate_storage_ref(document_id, checksum, extension)
        try:
            await self._bounded(
                self.storage.upload(
                    file_data=upload.file_data,
                    storage_ref=storage_ref,
                    expected_checksum=checksum,
                    content_type=upload.mime_type or DEFAULT_CONTENT_TYPE,
                    metadata={"document_id": document_id},
                ),
                storage_ref,
                "upload",
                timeout,
            )
        except StorageError:
            await self._discard_blob(storage_ref, timeout)
            raise

        return self._describe(upload, storage_ref, checksum, size, self.storage.provider), True

    @staticmethod
    def _describe(
        upload: FileUpload, storage_ref: str, checksum: str, size: int, provider: str
    ) -> FileMeta:
        return FileMeta(
            file_name=upload.file_name,
            storage_ref=storage_ref,
            content_hash=checksum,
            file_size=size,
            storage_provider=provider,
            file_type=upload.extension or None,
            mime_type=upload.mime_type,
        )

    async def _discard_blob(self, storage_ref: str, timeout: float) -> None:
        """Best-effort removal of a blob no version will reference"""
        try:
            await self._bounded(self.storage.delete(storage_ref), storage_ref, "delete", timeout)
            logger.info("Removed orphaned blob %s", storage_ref)
        except StorageError as e:
            logger.error("Failed to remove orphaned blob %s: %s", storage_ref, e)

    # Creation and versions

    @traced("document.create")
    async def create_document(
        self,
        owner_id: str,
        upload: FileUpload,
        title: str | None = None,
        description: str | None = None,
        folder_id: str | None = None,
        tags: list[str] | None = None,
        context: ClientContext | None = None,
        timeout: float | None = None,
    ) -> DocumentEntity:
        """
        Create a document with version 1.

        Workflow:
        1. Store the blob
        2. In one transaction: insert the document, append version 1, apply
           tags, stage the ``upload`` audit entry
        3. On failure, delete the blob if this call created it
        """
        timeout = self._timeout(timeout)
        document_id = generate_cuid()
        file_meta, created = await self._store_blob(document_id, upload, timeout)

        try:
            async with self._uow() as uow:
                now = self.clock()
                document = await uow.documents.create(
                    document_id,
                    owner_id,
                    (title or upload.stem)[:255],
                    description=description,
                    folder_id=folder_id,
                    now=now,
                )
                version = await self._ledger(uow).append_version(
                    document, file_meta, owner_id, INITIAL_CHANGE_SUMMARY
                )
                tag_names: list[str] = []
                if tags:
                    tag_names = await uow.tags.set_document_tags(document_id, tags, owner_id, now)
                await self.access_logger.stage(
                    uow,
                    document_id,
                    AccessAction.UPLOAD,
                    user_id=owner_id,
                    version_id=version.id,
                    context=context,
                )
                document = await self._load(uow, document_id)
        except Exception:
            if created:
                await self._discard_blob(file_meta.storage_ref, timeout)
            raise

        add_span_attributes(document_id=document_id, content_hash=file_meta.content_hash)
        logger.info("Created document %s for owner %s", document_id, owner_id)
        return replace(document, versions=(version,), tags=tuple(tag_names))

    async def _append_with_retry(
        self,
        document_id: str,
        file_meta: FileMeta,
        uploader_id: str,
        change_summary: str,
        is_autosave: bool,
        context: ClientContext | None,
    ) -> VersionRecord:
        """
        Each attempt runs in a fresh transaction against fresh state.

        Only version-number races are retried. A document deleted since the
        caller checked it raises ConflictError on the spot.
        """
        max_attempts = self.settings.version_append_max_attempts
        attempt = 1
        while True:
            try:
                async with self._uow() as uow:
                    document = await self._load(uow, document_id)
                    self._ensure_live(document)
                    version = await self._ledger(uow).append_version(
                        document, file_meta, uploader_id, change_summary, is_autosave
                    )
                    await self.access_logger.stage(
                        uow,
                        document_id,
                        AccessAction.UPDATE,
                        user_id=uploader_id,
                        version_id=version.id,
                        context=context,
                    )
                return version
            except VersionConflictError:
                if attempt >= max_attempts:
                    logger.warning(
                        "Giving up on version append for document %s after %d attempts",
                        document_id,
                        max_attempts,
                    )
                    raise
                add_span_event(
                    "version.append_conflict", {"document_id": document_id, "attempt": attempt}
                )
                logger.info(
                    "Version race on document %s (attempt %d/%d), retrying",
                    document_id,
                    attempt,
                    max_attempts,
                )
                attempt += 1

    @traced("document.upload_version")
    async def upload_version(
        self,
        document_id: str,
        actor: Actor,
        upload: FileUpload,
        change_summary: str | None = None,
        is_autosave: bool = False,
        context: ClientContext | None = None,
        timeout: float | None = None,
    ) -> VersionRecord:
        """
        Append a new version. Owner only.

        Raises:
            ConflictError: the document is deleted, or the version number kept
                being taken by concurrent uploads
        """
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                self._ensure_live(document)
        if not decision.is_owner or actor.user_id is None:
            await self._deny(document, actor, AccessAction.UPDATE, context)

        timeout = self._timeout(timeout)
        file_meta, created = await self._store_blob(document_id, upload, timeout)
        try:
            version = await self._append_with_retry(
                document_id,
                file_meta,
                actor.user_id,
                change_summary or VERSION_CHANGE_SUMMARY,
                is_autosave,
                context,
            )
        except Exception:
            if created:
                await self._discard_blob(file_meta.storage_ref, timeout)
            raise

        logger.info("Document %s is now at version %d", document_id, version.version_number)
        return version

    async def get_version(
        self, document_id: str, actor: Actor, version_number: int | None = None
    ) -> VersionRecord:
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.allows(PermissionLevel.VIEW):
                return await self._ledger(uow).get_version(document, version_number)
        await self._deny(document, actor, AccessAction.VIEW)

    async def list_versions(self, document_id: str, actor: Actor) -> list[VersionRecord]:
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.allows(PermissionLevel.VIEW):
                return await self._ledger(uow).list_versions(document)
        await self._deny(document, actor, AccessAction.VIEW)

    @traced("document.download")
    async def download_version(
        self,
        document_id: str,
        actor: Actor,
        version_number: int | None = None,
        context: ClientContext | None = None,
        timeout: float | None = None,
    ) -> tuple[VersionRecord, AsyncIterator[bytes]]:
        """
        Open a version for download.

        Spends one use of a public link when the link is what grants access.
        The spend, the audit entry and the blob existence check share one
        transaction, so a missing blob does not count as a use.
        """
        timeout = self._timeout(timeout)
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor, consume=True)
            if decision.allows(PermissionLevel.VIEW):
                version = await self._ledger(uow).get_version(document, version_number)
                exists = await self._bounded(
                    self.storage.exists(version.storage_ref), version.storage_ref, "exists", timeout
                )
                if not exists:
                    raise StorageNotFoundError(version.storage_ref)
                await self.access_logger.stage(
                    uow,
                    document.id,
                    AccessAction.DOWNLOAD,
                    user_id=actor.user_id,
                    version_id=version.id,
                    context=context,
                )
                return version, self._bounded_stream(version.storage_ref, timeout)
        await self._deny(document, actor, AccessAction.DOWNLOAD, context)

    # Metadata and lifecycle

    @traced("document.get")
    async def get_document(
        self, document_id: str, actor: Actor, context: ClientContext | None = None
    ) -> DocumentEntity:
        """
        The aggregate with its versions and tags loaded. Requires view.

        Like a download, a view granted by a public link spends one use.
        """
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor, consume=True)
            if decision.allows(PermissionLevel.VIEW):
                now = self.clock()
                await uow.documents.touch_last_accessed(document.id, now)
                versions = await self._ledger(uow).list_versions(document)
                tags = await uow.tags.list_names(document.id)
                await self.access_logger.stage(
                    uow, document.id, AccessAction.VIEW, user_id=actor.user_id, context=context
                )
                return replace(
                    document, last_accessed_at=now, versions=tuple(versions), tags=tuple(tags)
                )
        await self._deny(document, actor, AccessAction.VIEW, context)

    async def list_documents(
        self,
        owner_id: str,
        folder_id: str | None = None,
        search: str | None = None,
        favorites_only: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> list[DocumentEntity]:
        async with self._uow() as uow:
            return await uow.documents.list_for_owner(
                owner_id,
                folder_id=folder_id,
                search=search,
                favorites_only=favorites_only,
                skip=skip,
                limit=limit,
            )

    @traced("document.update")
    async def update_document(
        self, document_id: str, actor: Actor, changes: DocumentUpdate
    ) -> DocumentEntity:
        fields = changes.model_dump(exclude_unset=True)
        tags = fields.pop("tags", None)
        for key in _NON_NULLABLE_FIELDS:
            if key in fields and fields[key] is None:
                del fields[key]

        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner and actor.user_id is not None:
                self._ensure_live(document)
                now = self.clock()
                if fields:
                    document = await uow.documents.update_fields(document.id, fields, now) or document
                if tags is not None:
                    await uow.tags.set_document_tags(document.id, tags, actor.user_id, now)
                tag_names = await uow.tags.list_names(document.id)
                await self.access_logger.stage(
                    uow, document.id, AccessAction.UPDATE, user_id=actor.user_id
                )
                return replace(document, tags=tuple(tag_names))
        await self._deny(document, actor, AccessAction.UPDATE)

    @traced("document.soft_delete")
    async def soft_delete_document(self, document_id: str, actor: Actor) -> DocumentEntity:
        """
        Move the document to SOFT_DELETED. Owner only.

        ``purge_at`` is set once; deleting an already deleted document is a
        no-op that keeps the original purge time.
        """
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                if document.is_deleted:
                    return document
                now = self.clock()
                purge_at = now + timedelta(days=self.settings.soft_delete_retention_days)
                document = await uow.documents.update_fields(
                    document.id, {"is_deleted": True, "purge_at": purge_at}, now
                ) or document
                await self.access_logger.stage(
                    uow, document.id, AccessAction.DELETE, user_id=actor.user_id
                )
                logger.info("Soft-deleted document %s, purge at %s", document.id, purge_at)
                return document
        await self._deny(document, actor, AccessAction.DELETE)

    @traced("document.restore")
    async def restore_document(self, document_id: str, actor: Actor) -> DocumentEntity:
        """
        Bring a soft-deleted document back. Owner only.

        Raises:
            ConflictError: the purge time has already passed
        """
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                if not document.is_deleted:
                    return document
                now = self.clock()
                if document.purge_due(now):
                    raise ConflictError(
                        f"Document {document.id} is past its purge time and cannot be restored",
                        {"document_id": document.id},
                    )
                document = await uow.documents.update_fields(
                    document.id, {"is_deleted": False, "purge_at": None}, now
                ) or document
                await self.access_logger.stage(
                    uow, document.id, AccessAction.RESTORE, user_id=actor.user_id
                )
                logger.info("Restored document %s", document.id)
                return document
        await self._deny(document, actor, AccessAction.RESTORE)

    async def list_purge_candidates(self, limit: int = 100) -> list[DocumentEntity]:
        """Soft-deleted documents the external sweeper may now remove"""
        async with self._uow() as uow:
            return await uow.documents.list_purge_candidates(self.clock(), limit)

    # Access

    async def resolve_access(self, document_id: str, actor: Actor) -> AccessDecision:
        """Display-only resolution: never consumes a link, never logs"""
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            return await self._resolver(uow).resolve(document, actor)

    async def record_access(
        self,
        document_id: str,
        action: AccessAction,
        actor: Actor,
        version_number: int | None = None,
        context: ClientContext | None = None,
    ) -> AccessLogRecord | None:
        version_id = None
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            if version_number is not None:
                version = await self._ledger(uow).get_version(document, version_number)
                version_id = version.id
        return await self.access_logger.record(
            document.id, action, user_id=actor.user_id, version_id=version_id, context=context
        )

    async def get_access_log(
        self, document_id: str, actor: Actor, limit: int = 100
    ) -> list[AccessLogRecord]:
        """Audit trail, newest first. Owner only."""
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                return await uow.access_logs.list_for_document(document.id, limit)
        await self._deny(document, actor, AccessAction.VIEW)
