from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docvault.domain.entities import AccessLogRecord
from docvault.domain.enums import AccessAction
from docvault.domain.value_objects import ClientContext
from docvault.infrastructure.persistence.models.access_log import \
    DocumentAccessLog
from docvault.infrastructure.persistence.repositories.base import BaseRepository
from docvault.shared.utils import ensure_utc


class AccessLogRepository(BaseRepository[DocumentAccessLog]):
    """Append-only repository; exposes no update or delete."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, DocumentAccessLog)

    @staticmethod
    def to_entity(obj: DocumentAccessLog) -> AccessLogRecord:
        return AccessLogRecord(
            id=obj.id,
            document_id=obj.document_id,
            action=AccessAction(obj.action),
            occurred_at=ensure_utc(obj.occurred_at),
            granted=obj.granted,
            user_id=obj.user_id,
            version_id=obj.version_id,
            ip_address=obj.ip_address,
            user_agent=obj.user_agent,
            country_code=obj.country_code,
            device_type=obj.device_type,
        )

    async def append(
        self,
        document_id: str,
        action: AccessAction,
        *,
        occurred_at: datetime,
        user_id: str | None = None,
        version_id: str | None = None,
        granted: bool = True,
        context: ClientContext | None = None,
    ) -> AccessLogRecord:
        context = context or ClientContext()
        obj = DocumentAccessLog(
            document_id=document_id,
            action=action.value,
            user_id=user_id,
            version_id=version_id,
            granted=granted,
            occurred_at=occurred_at,
            ip_address=context.ip_address,
            # Column is bounded; clients send arbitrarily long agents
            user_agent=context.user_agent[:255] if context.user_agent else None,
            country_code=context.country_code,
            device_type=context.device_type,
        )
        await self.add(obj)
        return self.to_entity(obj)

    async def list_for_document(self, document_id: str, limit: int = 100) -> list[AccessLogRecord]:
        """Newest entries first"""
        result = await self.db.execute(
            select(DocumentAccessLog)
            .where(DocumentAccessLog.document_id == document_id)
            .order_by(DocumentAccessLog.occurred_at.desc(), DocumentAccessLog.id.desc())
            .limit(limit)
        )
        return [self.to_entity(obj) for obj in result.scalars().all()]
