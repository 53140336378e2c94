"""
Version ledger.

Append-only, gap-free version history of one document. Numbers start at 1,
increase by exactly 1, and are never reused.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from docvault.domain.entities import DocumentEntity, VersionRecord
from docvault.domain.exceptions import NotFoundError, VersionConflictError
from docvault.domain.value_objects import FileMeta
from docvault.infrastructure.persistence.repositories import (
    DocumentRepository, DocumentVersionRepository)
from docvault.shared.telemetry.logging import get_logger
from docvault.shared.utils import utc_now

logger = get_logger(__name__)


class VersionLedger:
    """
    Works inside the caller's unit of work.

    Appends are optimistic: the next number is derived from the stored
    ``latest_version``, the row insert is guarded by the unique
    (document_id, version_number) constraint, and the document pointer only
    advances through a compare-and-swap. Either guard failing raises
    VersionConflictError; retrying is the caller's job.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        versions: DocumentVersionRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.documents = documents
        self.versions = versions
        self.clock = clock

    async def append_version(
        self,
        document: DocumentEntity,
        file_meta: FileMeta,
        uploader_id: str,
        change_summary: str | None,
        is_autosave: bool = False,
    ) -> VersionRecord:
        """
        Record a new version as ``latest_version + 1``.

        Raises:
            NotFoundError: the document no longer exists
            VersionConflictError: another writer took the number first
        """
        current = await self.documents.get_latest_version_number(document.id)
        if current is None:
            raise NotFoundError("Document", document.id)

        next_number = current + 1
        now = self.clock()
        version = await self.versions.insert(
            document.id,
            next_number,
            file_meta,
            uploaded_by=uploader_id,
            uploaded_at=now,
            change_summary=change_summary,
            is_autosave=is_autosave,
        )

        advanced = await self.documents.compare_and_set_latest_version(
            document.id, current, next_number, now
        )
        if not advanced:
            raise VersionConflictError(
                f"Document {document.id} moved past version {current} during append",
                {"document_id": document.id, "expected_version": current},
            )

        logger.debug("Appended version %d to document %s", next_number, document.id)
        return version

    async def get_version(
        self, document: DocumentEntity, version_number: int | None = None
    ) -> VersionRecord:
        """The named version, or the latest when ``version_number`` is omitted"""
        number = document.latest_version if version_number is None else version_number
        if number < 1:
            raise NotFoundError("DocumentVersion", f"{document.id}@{number}")

        version = await self.versions.get(document.id, number)
        if version is None:
            raise NotFoundError("DocumentVersion", f"{document.id}@{number}")
        return version

    async def list_versions(self, document: DocumentEntity) -> list[VersionRecord]:
        """Snapshot of every version, newest first"""
        return await self.versions.list_for_document(document.id)
