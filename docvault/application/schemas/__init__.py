from docvault.application.schemas.document import DocumentUpdate

__all__ = ["DocumentUpdate"]
