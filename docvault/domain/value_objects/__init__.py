"""Domain value objects."""

from docvault.domain.value_objects.core import (AccessDecision, Actor,
                                                ClientContext, FileMeta,
                                                FileUpload)

__all__ = [
    "Actor",
    "ClientContext",
    "FileUpload",
    "FileMeta",
    "AccessDecision",
]
