"""
Access logger.

Append-only audit trail. Writing an entry never fails the action it
describes: ``record`` swallows and reports its own failures.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from docvault.domain.entities import AccessLogRecord
from docvault.domain.enums import AccessAction
from docvault.domain.exceptions import LoggingError
from docvault.domain.value_objects import ClientContext
from docvault.infrastructure.persistence.unit_of_work import AsyncUnitOfWork
from docvault.shared.telemetry.logging import get_logger
from docvault.shared.telemetry.tracing import add_span_event
from docvault.shared.utils import utc_now

logger = get_logger(__name__)


class AccessLogger:
    def __init__(
        self,
        uow_factory: Callable[[], AsyncUnitOfWork],
        clock: Callable[[], datetime] = utc_now,
    ):
        self._uow = uow_factory
        self.clock = clock
        self.failed_writes = 0

    async def stage(
        self,
        uow: AsyncUnitOfWork,
        document_id: str,
        action: AccessAction,
        *,
        user_id: str | None = None,
        version_id: str | None = None,
        context: ClientContext | None = None,
        granted: bool = True,
    ) -> AccessLogRecord:
        """Add an entry to the caller's transaction; it commits or rolls back with it"""
        return await uow.access_logs.append(
            document_id,
            action,
            occurred_at=self.clock(),
            user_id=user_id,
            version_id=version_id,
            granted=granted,
            context=context,
        )

    async def record(
        self,
        document_id: str,
        action: AccessAction,
        *,
        user_id: str | None = None,
        version_id: str | None = None,
        context: ClientContext | None = None,
        granted: bool = True,
    ) -> AccessLogRecord | None:
        """
        Write an entry in its own transaction.

        Returns None when the write failed; the failure is logged, attached
        to the current span and counted in ``failed_writes``.
        """
        try:
            async with self._uow() as uow:
                return await self.stage(
                    uow,
                    document_id,
                    action,
                    user_id=user_id,
                    version_id=version_id,
                    context=context,
                    granted=granted,
                )
        except Exception as e:
            error = LoggingError(document_id, action.value, str(e))
            self.failed_writes += 1
            logger.error("%s: %s", error.message, e)
            add_span_event("access_log.write_failed", error.details)
            return None
