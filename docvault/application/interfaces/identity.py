"""Identity port: group membership as seen by the access resolver."""

from typing import Protocol


class IGroupMembershipProvider(Protocol):
    """Answers whether a user belongs to a group. May be served from a cache."""

    async def is_member(self, user_id: str, group_id: str) -> bool:
        ...
