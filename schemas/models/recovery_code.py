"""
Recovery code document model.

Maps to the `recovery-codes` MongoDB collection, one document per code.

code_hash stores argon2(canonical code); the plain code is shown to the user
once at generation time and never stored.
used_at is None until the code is consumed; once set it is never cleared.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel


class RecoveryCodeDoc(MongoBaseModel):
    """Document model for the `recovery-codes` collection."""

    user_id: str
    code_hash: str
    created_at: datetime
    used_at: Optional[datetime] = None

    @property
    def is_used(self) -> bool:
        return self.used_at is not None
