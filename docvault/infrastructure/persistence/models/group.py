from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from docvault.infrastructure.persistence.database import Base
from docvault.shared.utils import utc_now


class GroupMembership(Base):
    """User membership in a group, mirrored from the identity provider."""

    __tablename__ = "group_member"

    group_id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="member")
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
