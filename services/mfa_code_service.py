"""
MFA code service: issue, verify and cancel short-lived one-time codes.

The service generates codes and records them in a PendingCodeStore; sending
the code to the user is the caller's job. Verification outcomes are logged
without a reason so the log stream cannot tell an absent, expired or wrong
code apart.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from config import MfaSettings
from infrastructure.cache.code_store import CodeMethod, PendingCodeStore, method_name
from shared.generators import generate_mfa_code
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class IssuedCode:
    code: str
    method: CodeMethod
    expires_at: datetime


class MfaCodeService:
    def __init__(self, store: PendingCodeStore, settings: MfaSettings) -> None:
        self._store = store
        self._settings = settings

    @property
    def ttl_seconds(self) -> int:
        return self._settings.mfa_code_ttl_seconds

    async def issue(self, user_id: str, method: Union[CodeMethod, str]) -> IssuedCode:
        """Generate a code for ``(user_id, method)``, replacing any pending one.

        Raises:
            GeneratorUnavailableError: the secure random source is missing.
        """
        method = CodeMethod(method)
        code = generate_mfa_code(
            self._settings.mfa_code_min, self._settings.mfa_code_max
        )
        entry = await self._store.issue(user_id, method, code)
        log.info(
            "mfa_code_issued",
            user_id=user_id,
            method=method.value,
            expires_at=entry.expires_at.isoformat(),
        )
        return IssuedCode(code=code, method=method, expires_at=entry.expires_at)

    async def verify(
        self, user_id: str, method: Union[CodeMethod, str], code: str
    ) -> bool:
        verified = await self._store.verify(user_id, method, code.strip())
        if verified:
            log.info("mfa_code_verified", user_id=user_id, method=method_name(method))
        else:
            log.warning("mfa_code_rejected", user_id=user_id, method=method_name(method))
        return verified

    async def cancel(
        self,
        user_id: str,
        method: Union[CodeMethod, str],
        code: Optional[str] = None,
    ) -> None:
        """Drop the pending code for ``(user_id, method)``.

        When *code* is given the entry is only dropped while it still holds
        that code, so a newer issue for the same key survives.
        """
        await self._store.cancel(user_id, method, code)
        log.info("mfa_code_cancelled", user_id=user_id, method=method_name(method))
