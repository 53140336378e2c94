from datetime import datetime

from sqlalchemy import (BigInteger, Boolean, DateTime, ForeignKey, Index,
                        Integer, String, Text, UniqueConstraint)
from sqlalchemy.orm import Mapped, mapped_column

from docvault.infrastructure.persistence.database import Base
from docvault.infrastructure.persistence.models.mixins import (CuidMixin,
                                                               TimestampMixin)
from docvault.shared.utils import utc_now


class Document(CuidMixin, TimestampMixin, Base):
    """
    Document metadata. Owns its version ledger (``document_version`` rows).

    ``latest_version`` is 0 only inside the transaction that creates the
    document, before version 1 is appended.
    """

    __tablename__ = "document"

    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    folder_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Versioning
    latest_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Flags
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    # Lifecycle
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    purge_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    last_accessed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class DocumentVersion(CuidMixin, Base):
    """Immutable file revision. Never updated once written."""

    __tablename__ = "document_version"

    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("document.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # File metadata
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)  # SHA-256

    # Storage
    storage_ref: Mapped[str] = mapped_column(String, nullable=False)
    storage_provider: Mapped[str] = mapped_column(String(20), nullable=False, default="local")

    # Provenance
    uploaded_by: Mapped[str] = mapped_column(String, nullable=False, index=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, index=True
    )
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_autosave: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="ux_document_version_number"),
        Index("ix_document_version_document_number", "document_id", "version_number"),
    )
