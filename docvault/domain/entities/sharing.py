"""Sharing entities: direct/group shares and public links."""

from dataclasses import dataclass
from datetime import datetime

from docvault.domain.enums import PermissionLevel
from docvault.domain.exceptions import ValidationError


@dataclass(frozen=True)
class ShareEntity:
    """
    A grant of ``permission`` on a document to exactly one user or group.
    """

    id: str
    document_id: str
    permission: PermissionLevel
    shared_at: datetime
    user_id: str | None = None
    group_id: str | None = None
    shared_by: str | None = None
    expires_at: datetime | None = None
    access_count: int = 0
    message: str | None = None

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.group_id is None):
            raise ValidationError(
                "A share must target exactly one of a user or a group", "target"
            )

    @property
    def is_group_share(self) -> bool:
        return self.group_id is not None

    def is_active(self, now: datetime) -> bool:
        """An expired share is inert: it resolves as if it did not exist."""
        return self.expires_at is None or self.expires_at > now


@dataclass(frozen=True)
class PublicLinkEntity:
    """Capability token granting ``permission`` to whoever presents it."""

    id: str
    document_id: str
    created_by: str
    permission: PermissionLevel
    created_at: datetime
    password_hash: str | None = None
    max_uses: int | None = None
    use_count: int = 0
    expires_at: datetime | None = None

    @property
    def requires_password(self) -> bool:
        return self.password_hash is not None

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.use_count >= self.max_uses

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_usable(self, now: datetime) -> bool:
        return not self.is_exhausted and not self.is_expired(now)
