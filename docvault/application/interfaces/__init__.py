from docvault.application.interfaces.identity import IGroupMembershipProvider
from docvault.application.interfaces.storage import IBlobStore

__all__ = ["IBlobStore", "IGroupMembershipProvider"]
