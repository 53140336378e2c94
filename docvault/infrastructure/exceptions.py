"""
Infrastructure exceptions for DocVault.

Blob store failures. Any of these raised while creating a document or a new
version triggers compensating cleanup of the blob the call wrote.
"""

from docvault.domain.exceptions import DocVaultException


class StorageError(DocVaultException):
    """Base exception for blob store operations."""

    pass


class StorageNotFoundError(StorageError):
    """File not found in storage."""

    def __init__(self, file_path: str):
        super().__init__(
            f"File not found: {file_path}",
            "STORAGE_NOT_FOUND",
            {"file_path": file_path},
        )


class StorageUploadError(StorageError):
    """File upload failed."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            f"Failed to upload file: {file_path}",
            "STORAGE_UPLOAD_ERROR",
            {"file_path": file_path, "reason": reason},
        )


class StorageDownloadError(StorageError):
    """File download failed."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            f"Failed to download file: {file_path}",
            "STORAGE_DOWNLOAD_ERROR",
            {"file_path": file_path, "reason": reason},
        )


class StorageDeleteError(StorageError):
    """File deletion failed."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            f"Failed to delete file: {file_path}",
            "STORAGE_DELETE_ERROR",
            {"file_path": file_path, "reason": reason},
        )


class StorageChecksumMismatchError(StorageError):
    """Checksum validation failed - file corrupted or tampered."""

    def __init__(self, file_path: str, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for file: {file_path}",
            "STORAGE_CHECKSUM_ERROR",
            {"file_path": file_path, "expected": expected, "actual": actual},
        )


class StorageAlreadyExistsError(StorageError):
    """File already exists with different checksum."""

    def __init__(self, file_path: str):
        super().__init__(
            f"File already exists: {file_path}",
            "STORAGE_EXISTS_ERROR",
            {"file_path": file_path},
        )


class StoragePermissionError(StorageError):
    """Storage path escapes the storage root."""

    def __init__(self, file_path: str, operation: str):
        super().__init__(
            f"Path traversal detected during {operation} on {file_path}",
            "STORAGE_PERMISSION_ERROR",
            {"file_path": file_path, "operation": operation},
        )


class StorageTimeoutError(StorageError):
    """Blob store call exceeded the caller-supplied timeout."""

    def __init__(self, file_path: str, operation: str, timeout: float):
        super().__init__(
            f"Storage {operation} timed out after {timeout:.2f}s: {file_path}",
            "STORAGE_TIMEOUT",
            {"file_path": file_path, "operation": operation, "timeout": timeout},
        )
