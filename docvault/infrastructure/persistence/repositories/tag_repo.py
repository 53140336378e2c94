from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from docvault.infrastructure.persistence.models.tag import DocumentTag, Tag
from docvault.infrastructure.persistence.repositories.base import BaseRepository


class TagRepository(BaseRepository[Tag]):
    """Repository for tags and their assignment to documents."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Tag)

    async def get_or_create(self, name: str, now: datetime) -> Tag:
        result = await self.db.execute(select(Tag).where(Tag.name == name))
        tag = result.scalar_one_or_none()
        if tag is None:
            tag = await self.add(Tag(name=name, created_at=now))
        return tag

    async def list_names(self, document_id: str) -> list[str]:
        result = await self.db.execute(
            select(Tag.name)
            .join(DocumentTag, DocumentTag.tag_id == Tag.id)
            .where(DocumentTag.document_id == document_id)
            .order_by(Tag.name.asc())
        )
        return list(result.scalars().all())

    async def set_document_tags(
        self, document_id: str, names: Iterable[str], added_by: str, now: datetime
    ) -> list[str]:
        """
        Replace a document's tag set.

        Idempotent: assigning the current set again writes nothing.
        """
        wanted = {name.strip() for name in names if name and name.strip()}
        current = set(await self.list_names(document_id))

        stale = current - wanted
        if stale:
            stale_ids = select(Tag.id).where(Tag.name.in_(stale))
            await self.db.execute(
                delete(DocumentTag)
                .where(
                    and_(
                        DocumentTag.document_id == document_id,
                        DocumentTag.tag_id.in_(stale_ids),
                    )
                )
                .execution_options(synchronize_session=False)
            )

        for name in sorted(wanted - current):
            tag = await self.get_or_create(name, now)
            self.db.add(
                DocumentTag(document_id=document_id, tag_id=tag.id, added_by=added_by, added_at=now)
            )
        await self.db.flush()

        return sorted(wanted)
