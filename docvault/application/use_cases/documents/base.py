"""Shared plumbing for document use cases: loading, resolution, denial."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import NoReturn

from docvault.application.interfaces.identity import IGroupMembershipProvider
from docvault.application.services.access_logger import AccessLogger
from docvault.application.services.access_resolver import AccessResolver
from docvault.domain.entities import DocumentEntity
from docvault.domain.enums import AccessAction
from docvault.domain.exceptions import (ConflictError, ForbiddenError,
                                        NotFoundError)
from docvault.domain.value_objects import Actor, ClientContext
from docvault.infrastructure.persistence.unit_of_work import AsyncUnitOfWork
from docvault.shared.utils import utc_now


class DocumentUseCase:
    def __init__(
        self,
        uow_factory: Callable[[], AsyncUnitOfWork],
        groups: IGroupMembershipProvider,
        access_logger: AccessLogger,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._uow = uow_factory
        self.groups = groups
        self.access_logger = access_logger
        self.clock = clock

    def _resolver(self, uow: AsyncUnitOfWork) -> AccessResolver:
        return AccessResolver(uow.shares, uow.public_links, self.groups, clock=self.clock)

    async def _load(self, uow: AsyncUnitOfWork, document_id: str) -> DocumentEntity:
        document = await uow.documents.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        return document

    @staticmethod
    def _ensure_live(document: DocumentEntity) -> None:
        if document.is_deleted:
            raise ConflictError(
                f"Document {document.id} is deleted; restore it first",
                {"document_id": document.id},
            )

    async def _deny(
        self,
        document: DocumentEntity,
        actor: Actor,
        action: AccessAction,
        context: ClientContext | None = None,
    ) -> NoReturn:
        """
        Audit the refusal, then raise.

        Must be called outside any open unit of work. A soft-deleted document
        does not exist as far as non-owners can tell.
        """
        await self.access_logger.record(
            document.id, action, user_id=actor.user_id, context=context, granted=False
        )
        if document.is_deleted and not document.is_owned_by(actor.user_id):
            raise NotFoundError("Document", document.id)
        raise ForbiddenError(
            f"Not allowed to {action.value} document {document.id}",
            resource=f"document:{document.id}",
            action=action.value,
        )
