"""
Access resolver.

The single place where a user's (or link bearer's) permission level on a
document is computed. Every grant that matches contributes a level; the
result is their supremum on the view < comment < edit < owner lattice.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from docvault.application.interfaces.identity import IGroupMembershipProvider
from docvault.domain.entities import DocumentEntity, PublicLinkEntity
from docvault.domain.enums import PermissionLevel
from docvault.domain.value_objects import AccessDecision, Actor
from docvault.infrastructure.persistence.repositories import (
    PublicLinkRepository, ShareRepository)
from docvault.infrastructure.security import verify_password
from docvault.shared.utils import utc_now

SOURCE_OWNER = "owner"
SOURCE_PUBLIC = "public"
SOURCE_DIRECT_SHARE = "direct_share"
SOURCE_GROUP_SHARE = "group_share"
SOURCE_PUBLIC_LINK = "public_link"


class AccessResolver:
    """
    Resolves an actor's access to a document.

    Evaluation order:
    1. owner -> OWNER, even for soft-deleted or expired documents
    2. soft-deleted -> denied
    3. expired -> denied
    4. public flag -> VIEW
    5. active direct share -> its permission
    6. active group share of a group the user belongs to -> its permission
    7. usable public link for this document with the right password -> its permission

    ``consume=True`` (downloads) spends one use of a public link, but only
    when the link lifts the result above every other grant. The spend is a
    conditional UPDATE in the caller's transaction; losing the race for the
    last use drops the link from the result.
    """

    def __init__(
        self,
        shares: ShareRepository,
        public_links: PublicLinkRepository,
        groups: IGroupMembershipProvider,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.shares = shares
        self.public_links = public_links
        self.groups = groups
        self.clock = clock

    async def resolve(
        self, document: DocumentEntity, actor: Actor, *, consume: bool = False
    ) -> AccessDecision:
        now = self.clock()

        if document.is_owned_by(actor.user_id):
            return AccessDecision(level=PermissionLevel.OWNER, sources=(SOURCE_OWNER,))
        if document.is_deleted:
            return AccessDecision.deny("document_deleted")
        if document.is_expired(now):
            return AccessDecision.deny("document_expired")

        grants: list[tuple[str, PermissionLevel]] = []
        if document.is_public:
            grants.append((SOURCE_PUBLIC, PermissionLevel.VIEW))

        direct_share_ids: list[str] = []
        if actor.user_id is not None:
            for share in await self.shares.list_candidates(document.id, actor.user_id):
                if not share.is_active(now):
                    continue
                if share.user_id == actor.user_id:
                    grants.append((SOURCE_DIRECT_SHARE, share.permission))
                    direct_share_ids.append(share.id)
                elif share.group_id is not None and await self.groups.is_member(
                    actor.user_id, share.group_id
                ):
                    grants.append((SOURCE_GROUP_SHARE, share.permission))

        link = await self._usable_link(document, actor, now)
        link_id: str | None = None
        if link is not None:
            others = PermissionLevel.highest(level for _, level in grants)
            lifts = others is None or link.permission > others
            if consume and lifts:
                if await self.public_links.try_consume(link.id):
                    grants.append((SOURCE_PUBLIC_LINK, link.permission))
                    link_id = link.id
            else:
                grants.append((SOURCE_PUBLIC_LINK, link.permission))

        level = PermissionLevel.highest(level for _, level in grants)
        if level is None:
            return AccessDecision.deny("no_matching_grant")

        if consume:
            for share_id in direct_share_ids:
                await self.shares.increment_access_count(share_id)

        return AccessDecision(
            level=level,
            sources=tuple(source for source, _ in grants),
            link_id=link_id,
        )

    async def _usable_link(
        self, document: DocumentEntity, actor: Actor, now: datetime
    ) -> PublicLinkEntity | None:
        if not actor.link_token:
            return None

        link = await self.public_links.get(actor.link_token)
        if link is None or link.document_id != document.id or not link.is_usable(now):
            return None

        if link.requires_password:
            if not actor.link_password:
                return None
            matches = await asyncio.to_thread(
                verify_password, actor.link_password, link.password_hash
            )
            if not matches:
                return None

        return link
