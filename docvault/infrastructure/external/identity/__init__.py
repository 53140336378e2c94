from docvault.infrastructure.external.identity.group_provider import (
    CachedGroupMembershipProvider, SqlGroupMembershipProvider)

__all__ = ["SqlGroupMembershipProvider", "CachedGroupMembershipProvider"]
