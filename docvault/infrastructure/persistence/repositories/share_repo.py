from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docvault.domain.entities import PublicLinkEntity, ShareEntity
from docvault.domain.enums import PermissionLevel
from docvault.domain.exceptions import ConflictError
from docvault.infrastructure.persistence.models.sharing import (
    DocumentShare, PublicDocumentLink)
from docvault.infrastructure.persistence.repositories.base import BaseRepository
from docvault.shared.utils import ensure_utc


class ShareRepository(BaseRepository[DocumentShare]):
    """Repository for direct and group shares."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, DocumentShare)

    @staticmethod
    def to_entity(obj: DocumentShare) -> ShareEntity:
        return ShareEntity(
            id=obj.id,
            document_id=obj.document_id,
            permission=PermissionLevel(obj.permission),
            shared_at=ensure_utc(obj.shared_at),
            user_id=obj.shared_with_user,
            group_id=obj.shared_with_group,
            shared_by=obj.shared_by,
            expires_at=ensure_utc(obj.expires_at),
            access_count=obj.access_count,
            message=obj.message,
        )

    async def create(
        self,
        document_id: str,
        permission: PermissionLevel,
        *,
        user_id: str | None = None,
        group_id: str | None = None,
        shared_by: str | None = None,
        shared_at: datetime,
        expires_at: datetime | None = None,
        message: str | None = None,
    ) -> ShareEntity:
        """
        Raises:
            ConflictError: the document is already shared with this target
        """
        obj = DocumentShare(
            document_id=document_id,
            shared_with_user=user_id,
            shared_with_group=group_id,
            permission=permission.value,
            shared_by=shared_by,
            shared_at=shared_at,
            expires_at=expires_at,
            access_count=0,
            message=message,
        )
        try:
            await self.add(obj)
        except IntegrityError as e:
            raise ConflictError(
                f"Document {document_id} is already shared with this target",
                {"document_id": document_id, "user_id": user_id, "group_id": group_id},
            ) from e
        return self.to_entity(obj)

    async def get(self, share_id: str) -> ShareEntity | None:
        obj = await self.get_model(share_id, fresh=True)
        return self.to_entity(obj) if obj else None

    async def find_for_target(
        self, document_id: str, *, user_id: str | None = None, group_id: str | None = None
    ) -> ShareEntity | None:
        query = select(DocumentShare).where(DocumentShare.document_id == document_id)
        if user_id is not None:
            query = query.where(DocumentShare.shared_with_user == user_id)
        else:
            query = query.where(DocumentShare.shared_with_group == group_id)
        result = await self.db.execute(query)
        obj = result.scalar_one_or_none()
        return self.to_entity(obj) if obj else None

    async def list_for_document(self, document_id: str) -> list[ShareEntity]:
        result = await self.db.execute(
            select(DocumentShare)
            .where(DocumentShare.document_id == document_id)
            .order_by(DocumentShare.shared_at.asc())
            .execution_options(populate_existing=True)
        )
        return [self.to_entity(obj) for obj in result.scalars().all()]

    async def list_candidates(self, document_id: str, user_id: str | None) -> list[ShareEntity]:
        """The user's direct share plus every group share of the document"""
        target = DocumentShare.shared_with_group.is_not(None)
        if user_id is not None:
            target = or_(DocumentShare.shared_with_user == user_id, target)
        result = await self.db.execute(
            select(DocumentShare).where(and_(DocumentShare.document_id == document_id, target))
        )
        return [self.to_entity(obj) for obj in result.scalars().all()]

    async def increment_access_count(self, share_id: str) -> None:
        await self.db.execute(
            update(DocumentShare)
            .where(DocumentShare.id == share_id)
            .values(access_count=DocumentShare.access_count + 1)
            .execution_options(synchronize_session=False)
        )

    async def delete_for_document(self, document_id: str, share_id: str) -> bool:
        result = await self.db.execute(
            delete(DocumentShare)
            .where(and_(DocumentShare.id == share_id, DocumentShare.document_id == document_id))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class PublicLinkRepository(BaseRepository[PublicDocumentLink]):
    """Repository for public-link capability tokens."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, PublicDocumentLink)

    @staticmethod
    def to_entity(obj: PublicDocumentLink) -> PublicLinkEntity:
        return PublicLinkEntity(
            id=obj.id,
            document_id=obj.document_id,
            created_by=obj.created_by,
            permission=PermissionLevel(obj.permission),
            created_at=ensure_utc(obj.created_at),
            password_hash=obj.password_hash,
            max_uses=obj.max_uses,
            use_count=obj.use_count,
            expires_at=ensure_utc(obj.expires_at),
        )

    async def create(
        self,
        link_id: str,
        document_id: str,
        permission: PermissionLevel,
        *,
        created_by: str,
        created_at: datetime,
        password_hash: str | None = None,
        max_uses: int | None = None,
        expires_at: datetime | None = None,
    ) -> PublicLinkEntity:
        obj = PublicDocumentLink(
            id=link_id,
            document_id=document_id,
            created_by=created_by,
            permission=permission.value,
            password_hash=password_hash,
            max_uses=max_uses,
            use_count=0,
            created_at=created_at,
            expires_at=expires_at,
        )
        await self.add(obj)
        return self.to_entity(obj)

    async def get(self, link_id: str) -> PublicLinkEntity | None:
        obj = await self.get_model(link_id, fresh=True)
        return self.to_entity(obj) if obj else None

    async def list_for_document(self, document_id: str) -> list[PublicLinkEntity]:
        result = await self.db.execute(
            select(PublicDocumentLink)
            .where(PublicDocumentLink.document_id == document_id)
            .order_by(PublicDocumentLink.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return [self.to_entity(obj) for obj in result.scalars().all()]

    async def try_consume(self, link_id: str) -> bool:
        """
        Atomically count one use of the link.

        The limit is part of the UPDATE predicate, so concurrent consumers
        can never push ``use_count`` past ``max_uses``. Returns False when the
        link was exhausted in the meantime.
        """
        result = await self.db.execute(
            update(PublicDocumentLink)
            .where(
                and_(
                    PublicDocumentLink.id == link_id,
                    or_(
                        PublicDocumentLink.max_uses.is_(None),
                        PublicDocumentLink.use_count < PublicDocumentLink.max_uses,
                    ),
                )
            )
            .values(use_count=PublicDocumentLink.use_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_for_document(self, document_id: str, link_id: str) -> bool:
        result = await self.db.execute(
            delete(PublicDocumentLink)
            .where(
                and_(
                    PublicDocumentLink.id == link_id,
                    PublicDocumentLink.document_id == document_id,
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
