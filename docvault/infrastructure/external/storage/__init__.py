"""Blob store implementations for document storage."""

from docvault.infrastructure.external.storage.factory import StorageFactory
from docvault.infrastructure.external.storage.local_storage import \
    LocalStorageService

__all__ = ["LocalStorageService", "StorageFactory"]
