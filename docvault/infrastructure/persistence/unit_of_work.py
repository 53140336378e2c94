from __future__ import annotations

from types import TracebackType

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docvault.infrastructure.persistence.repositories import (
    AccessLogRepository, DocumentRepository, DocumentVersionRepository,
    GroupMembershipRepository, PublicLinkRepository, ShareRepository,
    TagRepository)


class AsyncUnitOfWork:
    """
    One session, one transaction.

    Commits when the block exits normally, rolls back when it raises.
    Repositories are bound to the session on entry.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sf = session_factory
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "AsyncUnitOfWork":
        self.session = self._sf()
        await self.session.__aenter__()

        self.documents = DocumentRepository(self.session)
        self.versions = DocumentVersionRepository(self.session)
        self.shares = ShareRepository(self.session)
        self.public_links = PublicLinkRepository(self.session)
        self.access_logs = AccessLogRepository(self.session)
        self.tags = TagRepository(self.session)
        self.groups = GroupMembershipRepository(self.session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.session is None:
            raise RuntimeError("Unit of work exited without being entered")
        try:
            if exc:
                await self.session.rollback()
            else:
                await self.session.commit()
        finally:
            await self.session.__aexit__(exc_type, exc, tb)
            self.session = None
