from docvault.infrastructure.persistence.models.access_log import \
    DocumentAccessLog
from docvault.infrastructure.persistence.models.document import (
    Document, DocumentVersion)
from docvault.infrastructure.persistence.models.group import GroupMembership
# Mixins for model composition
from docvault.infrastructure.persistence.models.mixins import (CuidMixin,
                                                               TimestampMixin)
from docvault.infrastructure.persistence.models.sharing import (
    DocumentShare, PublicDocumentLink)
from docvault.infrastructure.persistence.models.tag import DocumentTag, Tag

__all__ = [
    # Models
    "Document",
    "DocumentVersion",
    "DocumentShare",
    "PublicDocumentLink",
    "DocumentAccessLog",
    "Tag",
    "DocumentTag",
    "GroupMembership",
    # Mixins
    "CuidMixin",
    "TimestampMixin",
]
