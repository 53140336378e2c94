from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docvault.domain.entities import DocumentEntity, VersionRecord
from docvault.infrastructure.persistence.models.document import Document
from docvault.infrastructure.persistence.repositories.base import BaseRepository
from docvault.shared.utils import ensure_utc


class DocumentRepository(BaseRepository[Document]):
    """Repository for the document aggregate root."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Document)

    @staticmethod
    def to_entity(
        obj: Document,
        versions: Sequence[VersionRecord] = (),
        tags: Sequence[str] = (),
    ) -> DocumentEntity:
        return DocumentEntity(
            id=obj.id,
            owner_id=obj.owner_id,
            title=obj.title,
            latest_version=obj.latest_version,
            created_at=ensure_utc(obj.created_at),
            updated_at=ensure_utc(obj.updated_at),
            description=obj.description,
            folder_id=obj.folder_id,
            is_public=obj.is_public,
            is_deleted=obj.is_deleted,
            is_favorite=obj.is_favorite,
            expires_at=ensure_utc(obj.expires_at),
            purge_at=ensure_utc(obj.purge_at),
            last_accessed_at=ensure_utc(obj.last_accessed_at),
            versions=tuple(versions),
            tags=tuple(tags),
        )

    async def create(
        self,
        document_id: str,
        owner_id: str,
        title: str,
        *,
        description: str | None = None,
        folder_id: str | None = None,
        now: datetime,
    ) -> DocumentEntity:
        """Insert a document with an empty ledger (``latest_version = 0``)."""
        obj = Document(
            id=document_id,
            owner_id=owner_id,
            title=title,
            description=description,
            folder_id=folder_id,
            latest_version=0,
            created_at=now,
            updated_at=now,
        )
        await self.add(obj)
        return self.to_entity(obj)

    async def get(self, document_id: str) -> DocumentEntity | None:
        """Get the document without its associations, soft-deleted included"""
        obj = await self.get_model(document_id, fresh=True)
        return self.to_entity(obj) if obj else None

    async def get_latest_version_number(self, document_id: str) -> int | None:
        """Read ``latest_version`` straight from the database."""
        result = await self.db.execute(
            select(Document.latest_version).where(Document.id == document_id)
        )
        return result.scalar_one_or_none()

    async def compare_and_set_latest_version(
        self, document_id: str, expected: int, new: int, now: datetime
    ) -> bool:
        """
        Advance ``latest_version`` only if it still equals ``expected``.

        Returns False when another writer moved it first.
        """
        result = await self.db.execute(
            update(Document)
            .where(and_(Document.id == document_id, Document.latest_version == expected))
            .values(latest_version=new, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_fields(
        self, document_id: str, fields: dict[str, Any], now: datetime
    ) -> DocumentEntity | None:
        obj = await self.get_model(document_id, fresh=True)
        if obj is None:
            return None
        for key, value in fields.items():
            setattr(obj, key, value)
        obj.updated_at = now
        await self.save(obj)
        return self.to_entity(obj)

    async def touch_last_accessed(self, document_id: str, now: datetime) -> None:
        await self.db.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(last_accessed_at=now)
            .execution_options(synchronize_session=False)
        )

    async def list_for_owner(
        self,
        owner_id: str,
        *,
        folder_id: str | None = None,
        search: str | None = None,
        favorites_only: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> list[DocumentEntity]:
        """List an owner's live documents, most recently updated first"""
        query = select(Document).where(
            and_(Document.owner_id == owner_id, Document.is_deleted.is_(False))
        )
        if folder_id is not None:
            query = query.where(Document.folder_id == folder_id)
        if favorites_only:
            query = query.where(Document.is_favorite.is_(True))
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(Document.title.ilike(pattern), Document.description.ilike(pattern))
            )

        query = query.order_by(Document.updated_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return [self.to_entity(obj) for obj in result.scalars().all()]

    async def list_purge_candidates(self, now: datetime, limit: int = 100) -> list[DocumentEntity]:
        """Soft-deleted documents whose retention window has elapsed"""
        result = await self.db.execute(
            select(Document)
            .where(
                and_(
                    Document.is_deleted.is_(True),
                    Document.purge_at.is_not(None),
                    Document.purge_at <= now,
                )
            )
            .order_by(Document.purge_at.asc())
            .limit(limit)
        )
        return [self.to_entity(obj) for obj in result.scalars().all()]
