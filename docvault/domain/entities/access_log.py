"""Access log entity."""

from dataclasses import dataclass
from datetime import datetime

from docvault.domain.enums import AccessAction


@dataclass(frozen=True)
class AccessLogRecord:
    """Immutable audit record. Never updated or deleted by the core."""

    id: str
    document_id: str
    action: AccessAction
    occurred_at: datetime
    granted: bool = True
    user_id: str | None = None
    version_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    country_code: str | None = None
    device_type: str | None = None
