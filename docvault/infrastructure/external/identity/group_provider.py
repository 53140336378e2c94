"""Group membership providers backing group shares."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docvault.application.interfaces.identity import IGroupMembershipProvider
from docvault.infrastructure.cache.redis_cache import CacheService
from docvault.infrastructure.persistence.database import READ_ONLY_OPTION
from docvault.infrastructure.persistence.repositories.group_repo import \
    GroupMembershipRepository


class SqlGroupMembershipProvider:
    """
    Reads the ``group_member`` table in a short-lived session.

    The session only reads, so it never waits on a writer holding the
    database lock (the caller may be inside a unit of work).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sf = session_factory

    async def is_member(self, user_id: str, group_id: str) -> bool:
        async with self._sf() as session:
            await session.connection(execution_options={READ_ONLY_OPTION: True})
            return await GroupMembershipRepository(session).is_member(user_id, group_id)


class CachedGroupMembershipProvider:
    """
    Read-through cache in front of another provider.

    Answers may be stale by up to ``ttl`` seconds after a membership change
    unless ``invalidate`` is called.
    """

    KEY_PREFIX = "group_member"

    def __init__(self, inner: IGroupMembershipProvider, cache: CacheService, ttl: int = 30):
        self.inner = inner
        self.cache = cache
        self.ttl = ttl

    def _key(self, user_id: str, group_id: str) -> str:
        return f"{self.KEY_PREFIX}:{user_id}:{group_id}"

    async def is_member(self, user_id: str, group_id: str) -> bool:
        key = self._key(user_id, group_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return bool(cached)

        result = await self.inner.is_member(user_id, group_id)
        await self.cache.set(key, result, ttl=self.ttl)
        return result

    async def invalidate(self, user_id: str) -> int:
        """Drop every cached answer for a user"""
        return await self.cache.delete_pattern(f"{self.KEY_PREFIX}:{user_id}:*")
