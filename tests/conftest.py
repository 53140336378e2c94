"""Shared test fixtures for pytest"""
import io
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from docvault.application.services.access_logger import AccessLogger
from docvault.application.use_cases.documents import (DocumentService,
                                                      SharingService)
from docvault.domain.value_objects import Actor, FileUpload
from docvault.infrastructure.config.settings import Settings
from docvault.infrastructure.external.storage import LocalStorageService
from docvault.infrastructure.persistence.database import (
    create_engine, create_session_factory, init_models)
from docvault.infrastructure.persistence.unit_of_work import AsyncUnitOfWork
from tests.support import (OWNER_ID, OTHER_ID, VIEWER_ID, FakeClock,
                           StaticGroupMembership)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite database and storage root"""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'docvault.db'}",
        database_command_timeout=30.0,
        storage_root=str(tmp_path / "storage"),
        storage_timeout_seconds=5.0,
        redis_enabled=False,
    )


@pytest.fixture
async def engine(settings):
    engine = create_engine(settings)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def uow_factory(session_factory):
    def factory() -> AsyncUnitOfWork:
        return AsyncUnitOfWork(session_factory)

    return factory


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def groups():
    return StaticGroupMembership()


@pytest.fixture
def blob_store(settings):
    return LocalStorageService(storage_root=settings.storage_root)


@pytest.fixture
def access_logger(uow_factory, clock):
    return AccessLogger(uow_factory, clock=clock)


@pytest.fixture
def document_service(uow_factory, blob_store, groups, access_logger, settings, clock):
    return DocumentService(uow_factory, blob_store, groups, access_logger, settings, clock=clock)


@pytest.fixture
def sharing_service(uow_factory, groups, access_logger, clock):
    return SharingService(uow_factory, groups, access_logger, clock=clock)


@pytest.fixture
def make_upload():
    """Build a FileUpload from raw bytes"""

    def factory(
        content: bytes = b"%PDF-1.4 quarterly numbers",
        file_name: str = "report.pdf",
        mime_type: str | None = "application/pdf",
    ) -> FileUpload:
        return FileUpload(file_data=io.BytesIO(content), file_name=file_name, mime_type=mime_type)

    return factory


@pytest.fixture
def owner():
    return Actor.user(OWNER_ID)


@pytest.fixture
def viewer():
    return Actor.user(VIEWER_ID)


@pytest.fixture
def stranger():
    return Actor.user(OTHER_ID)


@pytest.fixture
async def document(document_service, make_upload):
    """A freshly created document owned by OWNER_ID"""
    return await document_service.create_document(OWNER_ID, make_upload())
