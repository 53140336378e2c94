from docvault.application.use_cases.documents.document_operations import \
    DocumentService
from docvault.application.use_cases.documents.sharing import SharingService

__all__ = ["DocumentService", "SharingService"]
