from datetime import datetime

from sqlalchemy import (CheckConstraint, DateTime, ForeignKey, Integer, String,
                        Text, UniqueConstraint)
from sqlalchemy.orm import Mapped, mapped_column

from docvault.infrastructure.persistence.database import Base
from docvault.infrastructure.persistence.models.mixins import CuidMixin
from docvault.shared.utils import utc_now


class DocumentShare(CuidMixin, Base):
    """
    Direct (user) or group share of a document.

    Exactly one of ``shared_with_user`` / ``shared_with_group`` is set. NULLs
    are distinct in unique constraints, so each constraint only binds the
    rows that use its column.
    """

    __tablename__ = "document_share"

    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("document.id", ondelete="CASCADE"), nullable=False, index=True
    )
    shared_with_user: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    shared_with_group: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    permission: Mapped[str] = mapped_column(String(20), nullable=False, default="view")

    shared_by: Mapped[str | None] = mapped_column(String, nullable=True)
    shared_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    access_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(shared_with_user IS NULL) <> (shared_with_group IS NULL)",
            name="ck_document_share_single_target",
        ),
        UniqueConstraint("document_id", "shared_with_user", name="ux_document_share_user"),
        UniqueConstraint("document_id", "shared_with_group", name="ux_document_share_group"),
    )


class PublicDocumentLink(Base):
    """Capability token. The primary key is the token itself."""

    __tablename__ = "public_document_link"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("document.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by: Mapped[str] = mapped_column(String, nullable=False)
    permission: Mapped[str] = mapped_column(String(20), nullable=False, default="view")
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    use_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "max_uses IS NULL OR use_count <= max_uses",
            name="ck_public_document_link_use_count",
        ),
    )
