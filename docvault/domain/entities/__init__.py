"""Domain entities."""

from docvault.domain.entities.access_log import AccessLogRecord
from docvault.domain.entities.document import DocumentEntity, VersionRecord
from docvault.domain.entities.sharing import PublicLinkEntity, ShareEntity

__all__ = [
    "DocumentEntity",
    "VersionRecord",
    "ShareEntity",
    "PublicLinkEntity",
    "AccessLogRecord",
]
