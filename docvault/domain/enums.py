"""Domain enumerations for DocVault."""

from collections.abc import Iterable
from enum import Enum


class PermissionLevel(str, Enum):
    """
    Permission lattice: view < comment < edit < owner.

    Higher levels imply every capability of lower ones, so levels compare by
    rank rather than by their string values.
    """

    VIEW = "view"
    COMMENT = "comment"
    EDIT = "edit"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _PERMISSION_RANKS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def highest(cls, levels: Iterable["PermissionLevel"]) -> "PermissionLevel | None":
        """Supremum of the given levels, or None when there are none."""
        best: PermissionLevel | None = None
        for level in levels:
            if best is None or level > best:
                best = level
        return best


_PERMISSION_RANKS = {
    PermissionLevel.VIEW: 1,
    PermissionLevel.COMMENT: 2,
    PermissionLevel.EDIT: 3,
    PermissionLevel.OWNER: 4,
}


class AccessAction(str, Enum):
    """Audited actions against a document"""

    VIEW = "view"
    DOWNLOAD = "download"
    DELETE = "delete"
    UPDATE = "update"
    RESTORE = "restore"
    SHARE = "share"
    PREVIEW = "preview"
    PRINT = "print"
    UPLOAD = "upload"


class DocumentLifecycle(str, Enum):
    """
    Document lifecycle states.

    PURGED is reached only through the external sweeper, which hard-deletes
    the rows; the core never observes a PURGED document.
    """

    ACTIVE = "active"
    SOFT_DELETED = "soft_deleted"
    PURGED = "purged"


class StorageProvider(str, Enum):
    """Blob store backends"""

    LOCAL = "local"
    S3 = "s3"
