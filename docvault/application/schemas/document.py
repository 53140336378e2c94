from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentUpdate(BaseModel):
    """
    Schema for updating document metadata.

    Only fields that were explicitly set are applied; setting ``description``,
    ``folder_id`` or ``expires_at`` to None clears them. ``tags`` replaces the
    whole tag set.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    folder_id: str | None = None
    is_favorite: bool | None = None
    is_public: bool | None = None
    expires_at: datetime | None = None
    tags: list[str] | None = None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        cleaned = []
        for tag in v:
            tag = tag.strip()
            if not tag:
                raise ValueError("Tags cannot be empty")
            if len(tag) > 100:
                raise ValueError("Tags cannot exceed 100 characters")
            if tag not in cleaned:
                cleaned.append(tag)
        return cleaned

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            raise ValueError("expires_at must be timezone-aware")
        return v
