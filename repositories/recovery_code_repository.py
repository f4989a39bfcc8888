"""
Async repository for the `recovery-codes` collection.

Consumption is a conditional update on ``used_at: None`` so a code can be
marked used exactly once, even when two requests race on the same code.
"""

from __future__ import annotations

from datetime import datetime

from pymongo import ASCENDING

from schemas.models.recovery_code import RecoveryCodeDoc
from shared.logging import get_logger

log = get_logger(__name__)

COLLECTION_NAME = "recovery-codes"


class RecoveryCodeRepository:
    def __init__(self, db) -> None:
        self._collection = db[COLLECTION_NAME]

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("user_id", ASCENDING)])
        await self._collection.create_index(
            [("user_id", ASCENDING), ("used_at", ASCENDING)]
        )

    async def replace_for_user(self, user_id: str, docs: list[RecoveryCodeDoc]) -> int:
        """Delete the user's existing set and insert *docs*. Returns inserted count."""
        result = await self._collection.delete_many({"user_id": user_id})
        if result.deleted_count:
            log.info(
                "recovery_codes_replaced",
                user_id=user_id,
                deleted=result.deleted_count,
            )
        if not docs:
            return 0
        inserted = await self._collection.insert_many([d.to_mongo() for d in docs])
        return len(inserted.inserted_ids)

    async def list_unused(self, user_id: str) -> list[RecoveryCodeDoc]:
        cursor = self._collection.find({"user_id": user_id, "used_at": None})
        return [RecoveryCodeDoc.from_mongo(raw) async for raw in cursor]

    async def mark_used(self, code_id, used_at: datetime) -> bool:
        """Mark a code used. False when it was already consumed by someone else."""
        result = await self._collection.update_one(
            {"_id": code_id, "used_at": None}, {"$set": {"used_at": used_at}}
        )
        return result.modified_count == 1

    async def count(self, user_id: str, *, unused_only: bool = False) -> int:
        query: dict = {"user_id": user_id}
        if unused_only:
            query["used_at"] = None
        return await self._collection.count_documents(query)

    async def delete_for_user(self, user_id: str) -> int:
        result = await self._collection.delete_many({"user_id": user_id})
        return result.deleted_count
