"""Tests for the document aggregate operations"""
import asyncio
import hashlib
from datetime import timedelta

import pytest

from docvault.application.schemas import DocumentUpdate
from docvault.application.services.version_ledger import VersionLedger
from docvault.application.use_cases.documents import DocumentService
from docvault.domain.enums import AccessAction, PermissionLevel
from docvault.domain.exceptions import (ConflictError, ForbiddenError,
                                        NotFoundError, VersionConflictError)
from docvault.domain.value_objects import Actor, ClientContext
from docvault.infrastructure.exceptions import (StorageNotFoundError,
                                                StorageTimeoutError)
from tests.support import OWNER_ID, VIEWER_ID


async def read_all(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


def blob_files(blob_store):
    """Stored blobs (sidecars excluded)"""
    return sorted(
        p for p in blob_store.storage_root.rglob("*")
        if p.is_file() and not p.name.endswith(".meta.json")
    )


class TestCreateDocument:
    async def test_create_stores_version_one(self, document_service, make_upload, blob_store, clock):
        """
        GIVEN an uploaded file
        WHEN creating a document
        THEN it gets version 1 with the file's hash, stored under a ref named after that hash
        """
        content = b"x" * 1024
        document = await document_service.create_document(
            OWNER_ID, make_upload(content, "report.pdf"), tags=["finance", "q1"]
        )

        checksum = hashlib.sha256(content).hexdigest()
        assert document.title == "report"
        assert document.latest_version == 1
        assert document.created_at == clock()
        assert document.tags == ("finance", "q1")
        (version,) = document.versions
        assert version.version_number == 1
        assert version.content_hash == checksum
        assert version.file_size == 1024
        assert version.file_type == "pdf"
        assert version.change_summary == "Initial upload"
        assert version.storage_ref.startswith(f"documents/{document.id}/{checksum}-")
        assert version.storage_ref.endswith(".pdf")
        assert await blob_store.exists(version.storage_ref)

    async def test_create_logs_upload(self, document_service, document, owner):
        log = await document_service.get_access_log(document.id, owner)

        uploads = [e for e in log if e.action is AccessAction.UPLOAD]
        assert len(uploads) == 1
        assert uploads[0].version_id == document.versions[0].id

    async def test_failed_transaction_removes_new_blob(
        self, document_service, make_upload, blob_store, monkeypatch
    ):
        """
        GIVEN the database write fails after the blob was stored
        WHEN creating a document
        THEN the error propagates and no orphaned blob remains
        """

        async def fail(*args, **kwargs):
            raise ConflictError("simulated")

        monkeypatch.setattr(VersionLedger, "append_version", fail)

        with pytest.raises(ConflictError):
            await document_service.create_document(OWNER_ID, make_upload())

        assert blob_files(blob_store) == []
        assert await document_service.list_documents(OWNER_ID) == []

    async def test_storage_timeout(self, document_service, make_upload, blob_store, monkeypatch):
        async def slow_upload(*args, **kwargs):
            await asyncio.sleep(1)

        monkeypatch.setattr(blob_store, "upload", slow_upload)

        with pytest.raises(StorageTimeoutError):
            await document_service.create_document(OWNER_ID, make_upload(), timeout=0.05)

        assert await document_service.list_documents(OWNER_ID) == []


class TestDownload:
    async def test_round_trip_is_byte_identical(self, document_service, make_upload, owner):
        content = bytes(range(256)) * 1000
        document = await document_service.create_document(
            OWNER_ID, make_upload(content, "data.bin", None)
        )

        version, stream = await document_service.download_version(document.id, owner)
        downloaded = await read_all(stream)

        assert downloaded == content
        assert hashlib.sha256(downloaded).hexdigest() == version.content_hash

    async def test_download_specific_version(self, document_service, document, owner, make_upload):
        await document_service.upload_version(document.id, owner, make_upload(b"second draft"))

        version, stream = await document_service.download_version(document.id, owner, 1)

        assert version.version_number == 1
        assert await read_all(stream) == b"%PDF-1.4 quarterly numbers"

    async def test_download_is_logged(self, document_service, document, owner):
        context = ClientContext(ip_address="198.51.100.4", device_type="mobile")

        await document_service.download_version(document.id, owner, context=context)

        log = await document_service.get_access_log(document.id, owner)
        downloads = [e for e in log if e.action is AccessAction.DOWNLOAD]
        assert len(downloads) == 1
        assert downloads[0].ip_address == "198.51.100.4"

    async def test_missing_blob_does_not_spend_link(
        self, document_service, sharing_service, document, owner, blob_store, uow_factory
    ):
        link = await sharing_service.create_public_link(document.id, owner, max_uses=1)
        await blob_store.delete(document.versions[0].storage_ref)

        with pytest.raises(StorageNotFoundError):
            await document_service.download_version(document.id, Actor.anonymous(link.id))

        async with uow_factory() as uow:
            stored = await uow.public_links.get(link.id)
        assert stored.use_count == 0

    async def test_single_use_link_scenario(self, document_service, sharing_service, document, owner):
        """
        GIVEN a public link with max_uses=1
        WHEN it is used for two concurrent downloads
        THEN exactly one succeeds and use_count ends at 1
        """
        link = await sharing_service.create_public_link(document.id, owner, max_uses=1)
        actor = Actor.anonymous(link.id)

        results = await asyncio.gather(
            document_service.download_version(document.id, actor),
            document_service.download_version(document.id, actor),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == 1
        assert len(failed) == 1
        assert isinstance(failed[0], ForbiddenError)
        links = await sharing_service.list_public_links(document.id, owner)
        assert links[0].use_count == 1


class TestVersions:
    async def test_upload_version_advances_ledger(self, document_service, document, owner, make_upload):
        version = await document_service.upload_version(
            document.id, owner, make_upload(b"v2"), change_summary="Fixed totals"
        )

        assert version.version_number == 2
        assert version.change_summary == "Fixed totals"
        latest = await document_service.get_version(document.id, owner)
        assert latest.id == version.id

    async def test_default_change_summary(self, document_service, document, owner, make_upload):
        version = await document_service.upload_version(
            document.id, owner, make_upload(b"autosaved"), is_autosave=True
        )

        assert version.change_summary == "Version update"
        assert version.is_autosave is True

    async def test_identical_bytes_reuse_blob(
        self, document_service, document, owner, make_upload, blob_store
    ):
        version = await document_service.upload_version(document.id, owner, make_upload())

        assert version.version_number == 2
        assert version.storage_ref == document.versions[0].storage_ref
        assert len(blob_files(blob_store)) == 1

    async def test_reused_blob_survives_failed_append(
        self, document_service, document, owner, make_upload, blob_store, monkeypatch
    ):
        async def fail(*args, **kwargs):
            raise ConflictError("simulated")

        monkeypatch.setattr(VersionLedger, "append_version", fail)

        with pytest.raises(ConflictError):
            await document_service.upload_version(document.id, owner, make_upload())

        assert await blob_store.exists(document.versions[0].storage_ref)

    async def test_conflicts_past_retry_budget_surface(
        self, document_service, document, owner, make_upload, blob_store, monkeypatch, settings
    ):
        """
        GIVEN every append attempt loses the version-number race
        WHEN uploading a new version
        THEN ConflictError surfaces after the configured attempts and the
             new blob is removed
        """
        attempts = []

        async def always_conflict(self, *args, **kwargs):
            attempts.append(1)
            raise VersionConflictError("simulated race")

        monkeypatch.setattr(VersionLedger, "append_version", always_conflict)

        with pytest.raises(ConflictError):
            await document_service.upload_version(document.id, owner, make_upload(b"new bytes"))

        assert len(attempts) == settings.version_append_max_attempts
        assert len(blob_files(blob_store)) == 1

    async def test_only_owner_uploads(
        self, document_service, sharing_service, document, owner, viewer, make_upload
    ):
        await sharing_service.share_document(
            document.id, owner, user_id=VIEWER_ID, permission=PermissionLevel.EDIT
        )

        with pytest.raises(ForbiddenError):
            await document_service.upload_version(document.id, viewer, make_upload(b"edit"))

    async def test_upload_to_deleted_document_conflicts(
        self, document_service, document, owner, make_upload
    ):
        await document_service.soft_delete_document(document.id, owner)

        with pytest.raises(ConflictError):
            await document_service.upload_version(document.id, owner, make_upload(b"late"))

    async def test_delete_during_upload_blocks_append(
        self, document_service, document, owner, make_upload, blob_store, monkeypatch
    ):
        """
        GIVEN the document is soft-deleted while the new blob is being stored
        WHEN the upload reaches the version append
        THEN it fails with ConflictError, no version is added and the blob is removed
        """
        store_blob = blob_store.upload

        async def delete_then_store(*args, **kwargs):
            await document_service.soft_delete_document(document.id, owner)
            return await store_blob(*args, **kwargs)

        monkeypatch.setattr(blob_store, "upload", delete_then_store)

        with pytest.raises(ConflictError) as exc_info:
            await document_service.upload_version(document.id, owner, make_upload(b"late"))

        assert not isinstance(exc_info.value, VersionConflictError)
        loaded = await document_service.get_document(document.id, owner)
        assert loaded.is_deleted
        assert loaded.latest_version == 1
        assert [v.version_number for v in loaded.versions] == [1]
        assert len(blob_files(blob_store)) == 1

    def test_each_upload_gets_its_own_ref(self):
        checksum = hashlib.sha256(b"same").hexdigest()

        first = DocumentService._generate_storage_ref("doc_1", checksum, "pdf")
        second = DocumentService._generate_storage_ref("doc_1", checksum, "pdf")

        assert first != second
        assert first.startswith(f"documents/doc_1/{checksum}-")

    async def test_failed_concurrent_upload_keeps_committed_blob(
        self, document_service, document, owner, make_upload, blob_store, monkeypatch
    ):
        """
        GIVEN two concurrent uploads of identical bytes
        WHEN one of them fails after its blob was stored
        THEN the version the other one committed still downloads intact
        """
        append_version = VersionLedger.append_version
        calls = []

        async def fail_first(self, *args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("simulated")
            return await append_version(self, *args, **kwargs)

        monkeypatch.setattr(VersionLedger, "append_version", fail_first)

        results = await asyncio.gather(
            document_service.upload_version(document.id, owner, make_upload(b"same")),
            document_service.upload_version(document.id, owner, make_upload(b"same")),
            return_exceptions=True,
        )

        versions = [r for r in results if not isinstance(r, BaseException)]
        errors = [r for r in results if isinstance(r, BaseException)]
        assert len(versions) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)
        assert await blob_store.exists(versions[0].storage_ref)
        _, stream = await document_service.download_version(document.id, owner)
        assert await read_all(stream) == b"same"

    async def test_viewer_lists_versions(
        self, document_service, sharing_service, document, owner, viewer, make_upload
    ):
        await sharing_service.share_document(document.id, owner, user_id=VIEWER_ID)
        await document_service.upload_version(document.id, owner, make_upload(b"v2"))

        versions = await document_service.list_versions(document.id, viewer)

        assert [v.version_number for v in versions] == [2, 1]

    async def test_stranger_cannot_read_versions(self, document_service, document, stranger):
        with pytest.raises(ForbiddenError):
            await document_service.list_versions(document.id, stranger)


class TestSharedDocumentScenario:
    async def test_share_version_and_soft_delete(
        self, document_service, sharing_service, make_upload, owner, viewer
    ):
        """
        GIVEN user A creates report.pdf (1024 bytes) and shares it with B at view
        WHEN A uploads a new version, B tries to, and A soft-deletes it
        THEN B keeps view until the delete, cannot upload, and loses access
             after the delete while A keeps owner
        """
        document = await document_service.create_document(
            OWNER_ID, make_upload(b"r" * 1024, "report.pdf")
        )
        assert document.latest_version == 1

        await sharing_service.share_document(document.id, owner, user_id=VIEWER_ID)
        assert (await document_service.resolve_access(document.id, viewer)).level is PermissionLevel.VIEW

        await document_service.upload_version(document.id, owner, make_upload(b"r" * 2048, "report.pdf"))
        assert (await document_service.get_document(document.id, owner)).latest_version == 2
        assert (await document_service.resolve_access(document.id, viewer)).level is PermissionLevel.VIEW
        assert (await document_service.get_version(document.id, viewer)).version_number == 2

        with pytest.raises(ForbiddenError):
            await document_service.upload_version(document.id, viewer, make_upload(b"mine"))

        await document_service.soft_delete_document(document.id, owner)
        assert (await document_service.resolve_access(document.id, viewer)).is_denied
        assert (await document_service.resolve_access(document.id, owner)).level is PermissionLevel.OWNER


class TestGetDocument:
    async def test_loads_versions_and_tags(self, document_service, make_upload, owner, clock):
        document = await document_service.create_document(OWNER_ID, make_upload(), tags=["legal"])
        await document_service.upload_version(document.id, owner, make_upload(b"v2"))
        clock.advance(minutes=3)

        loaded = await document_service.get_document(document.id, owner)

        assert [v.version_number for v in loaded.versions] == [2, 1]
        assert loaded.tags == ("legal",)
        assert loaded.last_accessed_at == clock()

    async def test_unknown_document(self, document_service, owner):
        with pytest.raises(NotFoundError):
            await document_service.get_document("does-not-exist", owner)

    async def test_denial_is_audited(self, document_service, document, owner, stranger):
        with pytest.raises(ForbiddenError):
            await document_service.get_document(document.id, stranger)

        log = await document_service.get_access_log(document.id, owner)
        denied = [e for e in log if not e.granted]
        assert len(denied) == 1
        assert denied[0].user_id == stranger.user_id
        assert denied[0].action is AccessAction.VIEW

    async def test_deleted_document_is_invisible_to_others(
        self, document_service, sharing_service, document, owner, viewer
    ):
        await sharing_service.share_document(document.id, owner, user_id=VIEWER_ID)
        await document_service.soft_delete_document(document.id, owner)

        with pytest.raises(NotFoundError):
            await document_service.get_document(document.id, viewer)
        assert (await document_service.get_document(document.id, owner)).is_deleted


class TestUpdateDocument:
    async def test_owner_updates_metadata(self, document_service, document, owner, clock):
        clock.advance(minutes=1)

        updated = await document_service.update_document(
            document.id,
            owner,
            DocumentUpdate(title="Q1 Report", description="Final", is_favorite=True, tags=["q1"]),
        )

        assert updated.title == "Q1 Report"
        assert updated.description == "Final"
        assert updated.is_favorite is True
        assert updated.tags == ("q1",)
        assert updated.updated_at == clock()

    async def test_tag_assignment_is_idempotent(self, document_service, document, owner, uow_factory):
        changes = DocumentUpdate(tags=["b", "a", "b"])

        first = await document_service.update_document(document.id, owner, changes)
        second = await document_service.update_document(document.id, owner, changes)

        assert first.tags == second.tags == ("a", "b")
        async with uow_factory() as uow:
            assert await uow.tags.list_names(document.id) == ["a", "b"]

    async def test_unset_fields_are_untouched(self, document_service, document, owner):
        await document_service.update_document(document.id, owner, DocumentUpdate(description="Keep"))

        updated = await document_service.update_document(document.id, owner, DocumentUpdate(title="New"))

        assert updated.description == "Keep"

    async def test_editor_cannot_update_metadata(
        self, document_service, sharing_service, document, owner, viewer
    ):
        await sharing_service.share_document(
            document.id, owner, user_id=VIEWER_ID, permission=PermissionLevel.OWNER
        )

        with pytest.raises(ForbiddenError):
            await document_service.update_document(document.id, viewer, DocumentUpdate(title="Mine"))


class TestLifecycle:
    async def test_soft_delete_schedules_purge(self, document_service, document, owner, clock, settings):
        deleted = await document_service.soft_delete_document(document.id, owner)

        assert deleted.is_deleted
        assert deleted.purge_at == clock() + timedelta(days=settings.soft_delete_retention_days)

    async def test_repeated_delete_keeps_purge_time(self, document_service, document, owner, clock):
        first = await document_service.soft_delete_document(document.id, owner)
        clock.advance(days=3)

        second = await document_service.soft_delete_document(document.id, owner)

        assert second.purge_at == first.purge_at

    async def test_only_owner_deletes(self, document_service, document, stranger):
        with pytest.raises(ForbiddenError):
            await document_service.soft_delete_document(document.id, stranger)

    async def test_restore_before_purge(self, document_service, document, owner, clock):
        await document_service.soft_delete_document(document.id, owner)
        clock.advance(days=29)

        restored = await document_service.restore_document(document.id, owner)

        assert not restored.is_deleted
        assert restored.purge_at is None

    async def test_restore_after_purge_time_conflicts(self, document_service, document, owner, clock):
        await document_service.soft_delete_document(document.id, owner)
        clock.advance(days=30)

        with pytest.raises(ConflictError):
            await document_service.restore_document(document.id, owner)

    async def test_purge_candidates(self, document_service, make_upload, owner, clock):
        doomed = await document_service.create_document(OWNER_ID, make_upload(b"old"))
        kept = await document_service.create_document(OWNER_ID, make_upload(b"new"))
        await document_service.soft_delete_document(doomed.id, owner)
        clock.advance(days=10)
        await document_service.soft_delete_document(kept.id, owner)
        clock.advance(days=21)

        candidates = await document_service.list_purge_candidates()

        assert [d.id for d in candidates] == [doomed.id]


class TestListDocuments:
    async def test_filters(self, document_service, make_upload, owner, clock):
        invoice = await document_service.create_document(
            OWNER_ID, make_upload(b"1"), title="Invoice March", folder_id="folder-a"
        )
        clock.advance(minutes=1)
        contract = await document_service.create_document(
            OWNER_ID, make_upload(b"2"), title="Contract", description="signed invoice terms"
        )
        clock.advance(minutes=1)
        gone = await document_service.create_document(OWNER_ID, make_upload(b"3"), title="Old invoice")
        await document_service.soft_delete_document(gone.id, owner)
        await document_service.create_document(VIEWER_ID, make_upload(b"4"), title="Invoice B")
        await document_service.update_document(contract.id, owner, DocumentUpdate(is_favorite=True))

        everything = await document_service.list_documents(OWNER_ID)
        searched = await document_service.list_documents(OWNER_ID, search="invoice")
        in_folder = await document_service.list_documents(OWNER_ID, folder_id="folder-a")
        favorites = await document_service.list_documents(OWNER_ID, favorites_only=True)

        assert {d.id for d in everything} == {invoice.id, contract.id}
        assert {d.id for d in searched} == {invoice.id, contract.id}
        assert [d.id for d in in_folder] == [invoice.id]
        assert [d.id for d in favorites] == [contract.id]


class TestRecordAccess:
    async def test_record_access_with_version(self, document_service, document, owner, viewer):
        entry = await document_service.record_access(
            document.id, AccessAction.PRINT, viewer, version_number=1
        )

        assert entry is not None
        assert entry.version_id == document.versions[0].id

    async def test_access_log_is_owner_only(self, document_service, document, viewer):
        with pytest.raises(ForbiddenError):
            await document_service.get_access_log(document.id, viewer)
