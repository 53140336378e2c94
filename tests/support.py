"""Test doubles and constants shared across test modules"""
from datetime import UTC, datetime, timedelta

FROZEN_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)

OWNER_ID = "user-alice"
VIEWER_ID = "user-bob"
OTHER_ID = "user-carol"


class FakeClock:
    """Manually advanced clock injected into services"""

    def __init__(self, now: datetime = FROZEN_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class StaticGroupMembership:
    """In-memory group membership provider"""

    def __init__(self):
        self.members: set[tuple[str, str]] = set()
        self.calls = 0

    def add(self, user_id: str, group_id: str) -> None:
        self.members.add((user_id, group_id))

    async def is_member(self, user_id: str, group_id: str) -> bool:
        self.calls += 1
        return (user_id, group_id) in self.members
