"""
Core value objects.

Immutable, self-validating values passed explicitly through every core call
(actor identity, client metadata, file metadata, access decisions).
"""

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import BinaryIO

from docvault.domain.enums import PermissionLevel
from docvault.domain.exceptions import ValidationError


@dataclass(frozen=True)
class Actor:
    """
    Who is asking.

    Either an authenticated user, an anonymous bearer of a public-link token,
    or an authenticated user who also presents a link token.
    """

    user_id: str | None = None
    link_token: str | None = None
    link_password: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.user_id and not self.link_token:
            raise ValidationError("Actor needs a user id or a link token", "actor")

    @classmethod
    def user(cls, user_id: str) -> "Actor":
        return cls(user_id=user_id)

    @classmethod
    def anonymous(cls, link_token: str, password: str | None = None) -> "Actor":
        return cls(link_token=link_token, link_password=password)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


@dataclass(frozen=True)
class ClientContext:
    """Client metadata stored with access-log entries."""

    ip_address: str | None = None
    user_agent: str | None = None
    country_code: str | None = None
    device_type: str | None = None


@dataclass(frozen=True)
class FileUpload:
    """An inbound file: its bytes plus what the client declared about it."""

    file_data: BinaryIO
    file_name: str
    mime_type: str | None = None

    def __post_init__(self) -> None:
        if not self.file_name or not self.file_name.strip():
            raise ValidationError("File must have a name", "file_name")

    @property
    def extension(self) -> str:
        """Lower-case extension without the dot ('' when there is none)."""
        return PurePath(self.file_name).suffix.lstrip(".").lower()

    @property
    def stem(self) -> str:
        return PurePath(self.file_name).stem


@dataclass(frozen=True)
class FileMeta:
    """Metadata of a stored blob, recorded on a version."""

    file_name: str
    storage_ref: str
    content_hash: str
    file_size: int
    storage_provider: str
    file_type: str | None = None
    mime_type: str | None = None

    def __post_init__(self) -> None:
        # SHA-256 produces 64 hex characters
        if len(self.content_hash) != 64 or any(
            c not in "0123456789abcdef" for c in self.content_hash
        ):
            raise ValidationError("Content hash must be a SHA-256 hex digest", "content_hash")
        if self.file_size < 0:
            raise ValidationError("File size cannot be negative", "file_size")


@dataclass(frozen=True)
class AccessDecision:
    """
    Outcome of access resolution.

    ``level`` is the supremum of every matching grant; None means Denied.
    ``sources`` names the grants that matched (owner, public, direct_share,
    group_share, public_link). ``link_id`` is set when a public link was
    consumed by this resolution.
    """

    level: PermissionLevel | None
    sources: tuple[str, ...] = ()
    link_id: str | None = None
    reason: str | None = None

    @classmethod
    def deny(cls, reason: str) -> "AccessDecision":
        return cls(level=None, reason=reason)

    @property
    def is_denied(self) -> bool:
        return self.level is None

    @property
    def is_owner(self) -> bool:
        """Ownership, as opposed to an owner-level share."""
        return "owner" in self.sources

    def allows(self, required: PermissionLevel) -> bool:
        return self.level is not None and self.level >= required
