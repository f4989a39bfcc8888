"""Fixtures shared by unit and integration tests."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from schemas.models.recovery_code import RecoveryCodeDoc


class FakeClock:
    """Callable clock for stores; tests move time forward explicitly."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeRecoveryCodeRepository:
    """In-memory stand-in with the same conditional-update semantics as Mongo."""

    def __init__(self) -> None:
        self.docs: list[RecoveryCodeDoc] = []

    async def replace_for_user(self, user_id, docs):
        self.docs = [d for d in self.docs if d.user_id != user_id]
        for d in docs:
            self.docs.append(d.model_copy(update={"id": ObjectId()}))
        return len(docs)

    async def list_unused(self, user_id):
        return [
            d.model_copy() for d in self.docs if d.user_id == user_id and d.used_at is None
        ]

    async def mark_used(self, code_id, used_at: datetime):
        for d in self.docs:
            if d.id == code_id and d.used_at is None:
                d.used_at = used_at
                return True
        return False

    async def count(self, user_id, *, unused_only=False):
        return sum(
            1
            for d in self.docs
            if d.user_id == user_id and (not unused_only or d.used_at is None)
        )

    async def delete_for_user(self, user_id):
        before = len(self.docs)
        self.docs = [d for d in self.docs if d.user_id != user_id]
        return before - len(self.docs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def recovery_repo():
    return FakeRecoveryCodeRepository()
