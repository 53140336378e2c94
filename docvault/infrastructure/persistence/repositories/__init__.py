from docvault.infrastructure.persistence.repositories.access_log_repo import \
    AccessLogRepository
from docvault.infrastructure.persistence.repositories.base import BaseRepository
from docvault.infrastructure.persistence.repositories.document_repo import \
    DocumentRepository
from docvault.infrastructure.persistence.repositories.group_repo import \
    GroupMembershipRepository
from docvault.infrastructure.persistence.repositories.share_repo import (
    PublicLinkRepository, ShareRepository)
from docvault.infrastructure.persistence.repositories.tag_repo import TagRepository
from docvault.infrastructure.persistence.repositories.version_repo import \
    DocumentVersionRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "DocumentVersionRepository",
    "ShareRepository",
    "PublicLinkRepository",
    "AccessLogRepository",
    "TagRepository",
    "GroupMembershipRepository",
]
