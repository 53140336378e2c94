"""Repository tests against a real SQLite database"""
import pytest

from docvault.domain.enums import AccessAction, PermissionLevel
from docvault.domain.exceptions import ConflictError, VersionConflictError
from docvault.domain.value_objects import ClientContext, FileMeta
from tests.support import FROZEN_TIME, OWNER_ID, VIEWER_ID


@pytest.fixture
async def document_id(uow_factory):
    async with uow_factory() as uow:
        document = await uow.documents.create(
            "doc-1", OWNER_ID, "Quarterly report", now=FROZEN_TIME
        )
    return document.id


class TestUnitOfWork:
    async def test_commits_on_success(self, uow_factory, document_id):
        async with uow_factory() as uow:
            document = await uow.documents.get(document_id)

        assert document.title == "Quarterly report"
        assert document.latest_version == 0
        assert document.created_at == FROZEN_TIME

    async def test_rolls_back_on_error(self, uow_factory):
        with pytest.raises(RuntimeError):
            async with uow_factory() as uow:
                await uow.documents.create("doc-2", OWNER_ID, "Draft", now=FROZEN_TIME)
                raise RuntimeError("abort")

        async with uow_factory() as uow:
            assert await uow.documents.get("doc-2") is None

    async def test_exit_without_enter(self, uow_factory):
        with pytest.raises(RuntimeError, match="without being entered"):
            await uow_factory().__aexit__(None, None, None)


class TestDocumentRepository:
    async def test_compare_and_set_latest_version(self, uow_factory, document_id):
        async with uow_factory() as uow:
            assert await uow.documents.compare_and_set_latest_version(
                document_id, 0, 1, FROZEN_TIME
            )
            assert not await uow.documents.compare_and_set_latest_version(
                document_id, 0, 1, FROZEN_TIME
            )

        async with uow_factory() as uow:
            assert await uow.documents.get_latest_version_number(document_id) == 1

    async def test_missing_document_has_no_version_number(self, uow_factory):
        async with uow_factory() as uow:
            assert await uow.documents.get_latest_version_number("nope") is None


def file_meta(content_hash: str, storage_ref: str) -> FileMeta:
    return FileMeta(
        file_name="report.pdf",
        storage_ref=storage_ref,
        content_hash=content_hash,
        file_size=10,
        storage_provider="local",
    )


class TestDocumentVersionRepository:
    async def test_duplicate_number_is_a_version_conflict(self, uow_factory, document_id):
        async with uow_factory() as uow:
            await uow.versions.insert(
                document_id, 1, file_meta("a" * 64, "r1"), uploaded_by=OWNER_ID, uploaded_at=FROZEN_TIME
            )

        with pytest.raises(VersionConflictError):
            async with uow_factory() as uow:
                await uow.versions.insert(
                    document_id, 1, file_meta("b" * 64, "r2"), uploaded_by=OWNER_ID,
                    uploaded_at=FROZEN_TIME,
                )

    async def test_find_by_content_hash_prefers_latest(self, uow_factory, document_id):
        async with uow_factory() as uow:
            for number, ref in ((1, "r1"), (2, "r2")):
                await uow.versions.insert(
                    document_id, number, file_meta("a" * 64, ref), uploaded_by=OWNER_ID,
                    uploaded_at=FROZEN_TIME,
                )

        async with uow_factory() as uow:
            found = await uow.versions.find_by_content_hash(document_id, "a" * 64)
            missing = await uow.versions.find_by_content_hash(document_id, "c" * 64)

        assert found.version_number == 2
        assert found.storage_ref == "r2"
        assert missing is None


class TestShareRepository:
    async def test_duplicate_user_share_conflicts(self, uow_factory, document_id):
        async with uow_factory() as uow:
            await uow.shares.create(
                document_id, PermissionLevel.VIEW, user_id=VIEWER_ID, shared_at=FROZEN_TIME
            )

        with pytest.raises(ConflictError):
            async with uow_factory() as uow:
                await uow.shares.create(
                    document_id, PermissionLevel.EDIT, user_id=VIEWER_ID, shared_at=FROZEN_TIME
                )

    async def test_candidates_include_group_shares(self, uow_factory, document_id):
        async with uow_factory() as uow:
            await uow.shares.create(
                document_id, PermissionLevel.VIEW, user_id=VIEWER_ID, shared_at=FROZEN_TIME
            )
            await uow.shares.create(
                document_id, PermissionLevel.EDIT, user_id="user-dave", shared_at=FROZEN_TIME
            )
            await uow.shares.create(
                document_id, PermissionLevel.COMMENT, group_id="group-1", shared_at=FROZEN_TIME
            )

        async with uow_factory() as uow:
            candidates = await uow.shares.list_candidates(document_id, VIEWER_ID)

        assert {(s.user_id, s.group_id) for s in candidates} == {
            (VIEWER_ID, None),
            (None, "group-1"),
        }


class TestPublicLinkRepository:
    async def test_try_consume_stops_at_max_uses(self, uow_factory, document_id):
        async with uow_factory() as uow:
            await uow.public_links.create(
                "token-1",
                document_id,
                PermissionLevel.VIEW,
                created_by=OWNER_ID,
                created_at=FROZEN_TIME,
                max_uses=2,
            )

        async with uow_factory() as uow:
            results = [await uow.public_links.try_consume("token-1") for _ in range(3)]

        assert results == [True, True, False]
        async with uow_factory() as uow:
            link = await uow.public_links.get("token-1")
        assert link.use_count == 2
        assert link.is_exhausted

    async def test_unlimited_link(self, uow_factory, document_id):
        async with uow_factory() as uow:
            await uow.public_links.create(
                "token-2", document_id, PermissionLevel.VIEW, created_by=OWNER_ID, created_at=FROZEN_TIME
            )
            for _ in range(5):
                assert await uow.public_links.try_consume("token-2")


class TestTagRepository:
    async def test_set_document_tags_replaces_set(self, uow_factory, document_id):
        async with uow_factory() as uow:
            assert await uow.tags.set_document_tags(
                document_id, ["beta", "alpha"], OWNER_ID, FROZEN_TIME
            ) == ["alpha", "beta"]
        async with uow_factory() as uow:
            await uow.tags.set_document_tags(document_id, ["beta", "gamma"], OWNER_ID, FROZEN_TIME)

        async with uow_factory() as uow:
            assert await uow.tags.list_names(document_id) == ["beta", "gamma"]

    async def test_tags_are_shared_between_documents(self, uow_factory, document_id):
        async with uow_factory() as uow:
            other = await uow.documents.create("doc-2", OWNER_ID, "Other", now=FROZEN_TIME)
            await uow.tags.set_document_tags(document_id, ["finance"], OWNER_ID, FROZEN_TIME)
            await uow.tags.set_document_tags(other.id, ["finance"], OWNER_ID, FROZEN_TIME)

        async with uow_factory() as uow:
            first = await uow.tags.get_or_create("finance", FROZEN_TIME)
            second = await uow.tags.get_or_create("finance", FROZEN_TIME)
        assert first.id == second.id


class TestAccessLogRepository:
    async def test_append_and_list_newest_first(self, uow_factory, document_id):
        long_agent = "Mozilla/5.0 " + "x" * 400
        async with uow_factory() as uow:
            await uow.access_logs.append(
                document_id, AccessAction.VIEW, occurred_at=FROZEN_TIME, user_id=VIEWER_ID
            )
            await uow.access_logs.append(
                document_id,
                AccessAction.DOWNLOAD,
                occurred_at=FROZEN_TIME.replace(hour=13),
                user_id=VIEWER_ID,
                granted=False,
                context=ClientContext(user_agent=long_agent, country_code="DE"),
            )

        async with uow_factory() as uow:
            entries = await uow.access_logs.list_for_document(document_id, limit=10)

        assert [e.action for e in entries] == [AccessAction.DOWNLOAD, AccessAction.VIEW]
        assert entries[0].granted is False
        assert entries[0].country_code == "DE"
        assert len(entries[0].user_agent) == 255
