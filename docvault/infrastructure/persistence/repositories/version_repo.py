from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docvault.domain.entities import VersionRecord
from docvault.domain.exceptions import VersionConflictError
from docvault.domain.value_objects import FileMeta
from docvault.infrastructure.persistence.models.document import DocumentVersion
from docvault.infrastructure.persistence.repositories.base import BaseRepository
from docvault.shared.utils import ensure_utc


class DocumentVersionRepository(BaseRepository[DocumentVersion]):
    """Insert-only access to the version ledger."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, DocumentVersion)

    @staticmethod
    def to_entity(obj: DocumentVersion) -> VersionRecord:
        return VersionRecord(
            id=obj.id,
            document_id=obj.document_id,
            version_number=obj.version_number,
            file_name=obj.file_name,
            storage_ref=obj.storage_ref,
            content_hash=obj.content_hash,
            file_size=obj.file_size,
            storage_provider=obj.storage_provider,
            uploaded_by=obj.uploaded_by,
            uploaded_at=ensure_utc(obj.uploaded_at),
            file_type=obj.file_type,
            mime_type=obj.mime_type,
            change_summary=obj.change_summary,
            is_autosave=obj.is_autosave,
        )

    async def insert(
        self,
        document_id: str,
        version_number: int,
        file_meta: FileMeta,
        *,
        uploaded_by: str,
        uploaded_at: datetime,
        change_summary: str | None = None,
        is_autosave: bool = False,
    ) -> VersionRecord:
        """
        Insert a version row.

        Raises:
            VersionConflictError: (document_id, version_number) is already taken
        """
        obj = DocumentVersion(
            document_id=document_id,
            version_number=version_number,
            file_name=file_meta.file_name,
            file_type=file_meta.file_type,
            mime_type=file_meta.mime_type,
            file_size=file_meta.file_size,
            content_hash=file_meta.content_hash,
            storage_ref=file_meta.storage_ref,
            storage_provider=file_meta.storage_provider,
            uploaded_by=uploaded_by,
            uploaded_at=uploaded_at,
            change_summary=change_summary,
            is_autosave=is_autosave,
        )
        try:
            await self.add(obj)
        except IntegrityError as e:
            raise VersionConflictError(
                f"Version {version_number} of document {document_id} already exists",
                {"document_id": document_id, "version_number": version_number},
            ) from e
        return self.to_entity(obj)

    async def get(self, document_id: str, version_number: int) -> VersionRecord | None:
        result = await self.db.execute(
            select(DocumentVersion).where(
                and_(
                    DocumentVersion.document_id == document_id,
                    DocumentVersion.version_number == version_number,
                )
            )
        )
        obj = result.scalar_one_or_none()
        return self.to_entity(obj) if obj else None

    async def list_for_document(self, document_id: str) -> list[VersionRecord]:
        """All versions of a document, newest first"""
        result = await self.db.execute(
            select(DocumentVersion)
            .where(DocumentVersion.document_id == document_id)
            .order_by(DocumentVersion.version_number.desc())
        )
        return [self.to_entity(obj) for obj in result.scalars().all()]

    async def find_by_content_hash(self, document_id: str, content_hash: str) -> VersionRecord | None:
        """Most recent committed version of the document holding these bytes"""
        result = await self.db.execute(
            select(DocumentVersion)
            .where(
                and_(
                    DocumentVersion.document_id == document_id,
                    DocumentVersion.content_hash == content_hash,
                )
            )
            .order_by(DocumentVersion.version_number.desc())
            .limit(1)
        )
        obj = result.scalar_one_or_none()
        return self.to_entity(obj) if obj else None
