"""
Recovery code service: generate, verify and report on a user's recovery set.

A set is issued all at once and replaces any previous set. Each code is
consumed permanently on first successful use. argon2 work runs in a worker
thread so the event loop is not blocked while a set is hashed or checked.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from config import MfaSettings
from errors import ForbiddenError, ValidationError
from repositories.recovery_code_repository import RecoveryCodeRepository
from schemas.models.recovery_code import RecoveryCodeDoc
from shared.crypto import hash_recovery_code, verify_recovery_code
from shared.generators import generate_recovery_codes
from shared.logging import get_logger

log = get_logger(__name__)

MIN_CODES_PER_SET = 1
MAX_CODES_PER_SET = 50


@dataclass(frozen=True)
class RecoveryCodeStatus:
    unused_count: int
    total_count: int


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Verified against when a user has no unused codes, so that case still
    # pays for one argon2 verify instead of answering immediately. Cost
    # otherwise grows with the number of unused codes in the set.
    return hash_recovery_code("0000-0000-0000")


def _find_match(code: str, docs: list[RecoveryCodeDoc]) -> Optional[RecoveryCodeDoc]:
    if not docs:
        verify_recovery_code(code, _dummy_hash())
        return None
    match = None
    for doc in docs:
        # No early exit: every unused hash is checked
        if verify_recovery_code(code, doc.code_hash) and match is None:
            match = doc
    return match


class RecoveryCodeService:
    def __init__(self, repository: RecoveryCodeRepository, settings: MfaSettings) -> None:
        self._repo = repository
        self._settings = settings

    @property
    def enabled(self) -> bool:
        return self._settings.recovery_codes_enabled

    async def generate(self, user_id: str, count: Optional[int] = None) -> list[str]:
        """Issue a fresh set for *user_id* and return the plaintext codes.

        The previous set, used or not, is discarded.

        Raises:
            ForbiddenError: recovery codes are disabled.
            ValidationError: *count* is outside 1..50.
            GeneratorUnavailableError: the secure random source is missing.
        """
        if not self.enabled:
            raise ForbiddenError("Recovery codes are disabled")
        if count is None:
            count = self._settings.recovery_codes_count
        if not MIN_CODES_PER_SET <= count <= MAX_CODES_PER_SET:
            raise ValidationError(
                f"count must be between {MIN_CODES_PER_SET} and {MAX_CODES_PER_SET}",
                field="count",
            )

        codes = generate_recovery_codes(count, self._settings.recovery_code_bytes)
        hashes = await asyncio.to_thread(
            lambda: [hash_recovery_code(c) for c in codes]
        )
        now = datetime.now(timezone.utc)
        docs = [
            RecoveryCodeDoc(user_id=user_id, code_hash=h, created_at=now)
            for h in hashes
        ]
        await self._repo.replace_for_user(user_id, docs)

        log.info("recovery_codes_generated", user_id=user_id, count=count)
        return codes

    async def verify(self, user_id: str, code: str) -> bool:
        """Consume *code* if it matches one of the user's unused codes."""
        if not self.enabled:
            return False

        docs = await self._repo.list_unused(user_id)
        match = await asyncio.to_thread(_find_match, code, docs)
        if match is None:
            log.warning("recovery_code_rejected", user_id=user_id)
            return False

        if not await self._repo.mark_used(match.id, datetime.now(timezone.utc)):
            # Another request consumed the same code first
            log.warning("recovery_code_rejected", user_id=user_id)
            return False

        log.info("recovery_code_consumed", user_id=user_id, code_id=str(match.id))
        return True

    async def status(self, user_id: str) -> RecoveryCodeStatus:
        total = await self._repo.count(user_id)
        unused = await self._repo.count(user_id, unused_only=True)
        return RecoveryCodeStatus(unused_count=unused, total_count=total)

    async def revoke(self, user_id: str) -> int:
        """Delete the user's whole set (e.g. when MFA is turned off)."""
        deleted = await self._repo.delete_for_user(user_id)
        log.info("recovery_codes_revoked", user_id=user_id, deleted=deleted)
        return deleted
