"""
Sharing use case.

Manages the grants the access resolver reads: direct shares, group shares
and public links. Every operation is owner only.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from docvault.application.use_cases.documents.base import DocumentUseCase
from docvault.domain.entities import PublicLinkEntity, ShareEntity
from docvault.domain.enums import AccessAction, PermissionLevel
from docvault.domain.exceptions import (ConflictError, NotFoundError,
                                        ValidationError)
from docvault.domain.value_objects import Actor, ClientContext
from docvault.infrastructure.security import MAX_PASSWORD_BYTES, hash_password
from docvault.shared.telemetry.logging import get_logger
from docvault.shared.telemetry.tracing import traced
from docvault.shared.utils import generate_link_token

logger = get_logger(__name__)


def _require_aware(value: datetime | None, field: str) -> None:
    if value is not None and value.tzinfo is None:
        raise ValidationError(f"{field} must be timezone-aware", field)


class SharingService(DocumentUseCase):
    @traced("sharing.share_document")
    async def share_document(
        self,
        document_id: str,
        actor: Actor,
        *,
        user_id: str | None = None,
        group_id: str | None = None,
        permission: PermissionLevel = PermissionLevel.VIEW,
        expires_at: datetime | None = None,
        message: str | None = None,
        context: ClientContext | None = None,
    ) -> ShareEntity:
        """
        Grant ``permission`` to exactly one user or group.

        Raises:
            ValidationError: no target, two targets, or the owner as target
            ConflictError: the target already has a share on this document
        """
        if (user_id is None) == (group_id is None):
            raise ValidationError("Share with exactly one of a user or a group", "target")
        _require_aware(expires_at, "expires_at")

        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                self._ensure_live(document)
                if user_id is not None and document.is_owned_by(user_id):
                    raise ValidationError("A document cannot be shared with its owner", "user_id")

                existing = await uow.shares.find_for_target(
                    document.id, user_id=user_id, group_id=group_id
                )
                if existing is not None:
                    raise ConflictError(
                        f"Document {document.id} is already shared with this target",
                        {"share_id": existing.id},
                    )

                share = await uow.shares.create(
                    document.id,
                    permission,
                    user_id=user_id,
                    group_id=group_id,
                    shared_by=actor.user_id,
                    shared_at=self.clock(),
                    expires_at=expires_at,
                    message=message,
                )
                await self.access_logger.stage(
                    uow, document.id, AccessAction.SHARE, user_id=actor.user_id, context=context
                )
                target = share.group_id if share.is_group_share else share.user_id
                logger.info("Shared document %s with %s (%s)", document.id, target, permission.value)
                return share
        await self._deny(document, actor, AccessAction.SHARE, context)

    async def revoke_share(self, document_id: str, actor: Actor, share_id: str) -> None:
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                if not await uow.shares.delete_for_document(document.id, share_id):
                    raise NotFoundError("DocumentShare", share_id)
                logger.info("Revoked share %s on document %s", share_id, document.id)
                return
        await self._deny(document, actor, AccessAction.SHARE)

    async def list_shares(self, document_id: str, actor: Actor) -> list[ShareEntity]:
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                return await uow.shares.list_for_document(document.id)
        await self._deny(document, actor, AccessAction.SHARE)

    @traced("sharing.create_public_link")
    async def create_public_link(
        self,
        document_id: str,
        actor: Actor,
        *,
        permission: PermissionLevel = PermissionLevel.VIEW,
        password: str | None = None,
        max_uses: int | None = None,
        expires_at: datetime | None = None,
    ) -> PublicLinkEntity:
        """
        Mint a capability token for the document.

        Raises:
            ValidationError: owner permission, non-positive max_uses, or an
                unusable password
        """
        if permission is PermissionLevel.OWNER:
            raise ValidationError("Public links cannot grant owner permission", "permission")
        if max_uses is not None and max_uses <= 0:
            raise ValidationError("max_uses must be positive", "max_uses")
        if password is not None and not password:
            raise ValidationError("Password cannot be empty", "password")
        if password is not None and len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password cannot exceed {MAX_PASSWORD_BYTES} bytes", "password"
            )
        _require_aware(expires_at, "expires_at")

        password_hash = await asyncio.to_thread(hash_password, password) if password else None

        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner and actor.user_id is not None:
                self._ensure_live(document)
                link = await uow.public_links.create(
                    generate_link_token(),
                    document.id,
                    permission,
                    created_by=actor.user_id,
                    created_at=self.clock(),
                    password_hash=password_hash,
                    max_uses=max_uses,
                    expires_at=expires_at,
                )
                await self.access_logger.stage(
                    uow, document.id, AccessAction.SHARE, user_id=actor.user_id
                )
                logger.info("Created public link on document %s (%s)", document.id, permission.value)
                return link
        await self._deny(document, actor, AccessAction.SHARE)

    async def revoke_public_link(self, document_id: str, actor: Actor, link_id: str) -> None:
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                if not await uow.public_links.delete_for_document(document.id, link_id):
                    raise NotFoundError("PublicDocumentLink", link_id)
                logger.info("Revoked public link on document %s", document.id)
                return
        await self._deny(document, actor, AccessAction.SHARE)

    async def list_public_links(self, document_id: str, actor: Actor) -> list[PublicLinkEntity]:
        async with self._uow() as uow:
            document = await self._load(uow, document_id)
            decision = await self._resolver(uow).resolve(document, actor)
            if decision.is_owner:
                return await uow.public_links.list_for_document(document.id)
        await self._deny(document, actor, AccessAction.SHARE)
