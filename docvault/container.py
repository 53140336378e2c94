"""
Composition root.

Builds the engine, session factory, blob store, cache and services from
settings. The host process owns the lifecycle: ``start`` on startup,
``close`` on shutdown.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from docvault.application.interfaces.identity import IGroupMembershipProvider
from docvault.application.interfaces.storage import IBlobStore
from docvault.application.services.access_logger import AccessLogger
from docvault.application.use_cases.documents import (DocumentService,
                                                      SharingService)
from docvault.infrastructure.cache import CacheService
from docvault.infrastructure.config.settings import Settings, get_settings
from docvault.infrastructure.external.identity import (
    CachedGroupMembershipProvider, SqlGroupMembershipProvider)
from docvault.infrastructure.external.storage import StorageFactory
from docvault.infrastructure.persistence.database import (
    create_engine, create_session_factory)
from docvault.infrastructure.persistence.unit_of_work import AsyncUnitOfWork
from docvault.shared.telemetry.logging import get_logger, setup_logging
from docvault.shared.utils import utc_now

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    cache: CacheService
    blob_store: IBlobStore
    groups: IGroupMembershipProvider
    access_logger: AccessLogger
    documents: DocumentService
    sharing: SharingService

    def unit_of_work(self) -> AsyncUnitOfWork:
        return AsyncUnitOfWork(self.session_factory)

    async def start(self) -> None:
        setup_logging(self.settings)
        await self.cache.connect()
        logger.info("%s %s ready", self.settings.app_name, self.settings.app_version)

    async def close(self) -> None:
        await self.cache.disconnect()
        await self.engine.dispose()


def create_container(
    settings: Settings | None = None,
    *,
    blob_store: IBlobStore | None = None,
    groups: IGroupMembershipProvider | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> ServiceContainer:
    """
    Wire every service.

    ``blob_store`` and ``groups`` replace the configured adapters, e.g. with
    an identity provider's own membership lookup.
    """
    settings = settings or get_settings()

    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    def uow_factory() -> AsyncUnitOfWork:
        return AsyncUnitOfWork(session_factory)

    cache = CacheService(settings)
    blob_store = blob_store or StorageFactory.create_storage_service(settings)
    if groups is None:
        groups = CachedGroupMembershipProvider(
            SqlGroupMembershipProvider(session_factory),
            cache,
            ttl=settings.cache_ttl_group_membership,
        )

    access_logger = AccessLogger(uow_factory, clock=clock)
    documents = DocumentService(
        uow_factory, blob_store, groups, access_logger, settings, clock=clock
    )
    sharing = SharingService(uow_factory, groups, access_logger, clock=clock)

    return ServiceContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        cache=cache,
        blob_store=blob_store,
        groups=groups,
        access_logger=access_logger,
        documents=documents,
        sharing=sharing,
    )
