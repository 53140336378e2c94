"""
Document aggregate entities.

The document owns its version ledger. These are the typed aggregates the
repositories return; associations (versions, tags) are only populated when
explicitly loaded.
"""

from dataclasses import dataclass
from datetime import datetime

from docvault.domain.enums import DocumentLifecycle


@dataclass(frozen=True)
class VersionRecord:
    """Immutable record of one file revision."""

    id: str
    document_id: str
    version_number: int
    file_name: str
    storage_ref: str
    content_hash: str
    file_size: int
    storage_provider: str
    uploaded_by: str
    uploaded_at: datetime
    file_type: str | None = None
    mime_type: str | None = None
    change_summary: str | None = None
    is_autosave: bool = False


@dataclass(frozen=True)
class DocumentEntity:
    """
    Domain entity for Document (business rules separate from persistence).
    """

    id: str
    owner_id: str
    title: str
    latest_version: int
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    folder_id: str | None = None
    is_public: bool = False
    is_deleted: bool = False
    is_favorite: bool = False
    expires_at: datetime | None = None
    purge_at: datetime | None = None
    last_accessed_at: datetime | None = None
    versions: tuple[VersionRecord, ...] = ()
    tags: tuple[str, ...] = ()

    def is_owned_by(self, user_id: str | None) -> bool:
        return user_id is not None and self.owner_id == user_id

    def is_expired(self, now: datetime) -> bool:
        """Past its expiry, the document is closed to everyone but the owner."""
        return self.expires_at is not None and self.expires_at <= now

    def lifecycle(self) -> DocumentLifecycle:
        if self.is_deleted:
            return DocumentLifecycle.SOFT_DELETED
        return DocumentLifecycle.ACTIVE

    def purge_due(self, now: datetime) -> bool:
        """Whether the sweeper may hard-delete this document."""
        return (
            self.lifecycle() is DocumentLifecycle.SOFT_DELETED
            and self.purge_at is not None
            and self.purge_at <= now
        )
