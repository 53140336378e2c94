from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from docvault.infrastructure.persistence.models.group import GroupMembership


class GroupMembershipRepository:
    """Membership table keyed by (group_id, user_id)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_member(self, user_id: str, group_id: str) -> bool:
        result = await self.db.execute(
            select(GroupMembership.user_id).where(
                and_(GroupMembership.group_id == group_id, GroupMembership.user_id == user_id)
            )
        )
        return result.scalar_one_or_none() is not None

    async def add_member(
        self, group_id: str, user_id: str, now: datetime, role: str = "member"
    ) -> None:
        if await self.is_member(user_id, group_id):
            return
        self.db.add(GroupMembership(group_id=group_id, user_id=user_id, role=role, joined_at=now))
        await self.db.flush()

    async def remove_member(self, group_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            delete(GroupMembership).where(
                and_(GroupMembership.group_id == group_id, GroupMembership.user_id == user_id)
            )
        )
        return result.rowcount == 1

    async def list_groups(self, user_id: str) -> list[str]:
        result = await self.db.execute(
            select(GroupMembership.group_id)
            .where(GroupMembership.user_id == user_id)
            .order_by(GroupMembership.group_id.asc())
        )
        return list(result.scalars().all())
