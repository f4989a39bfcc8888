"""EmailProvider protocol. Routes depend on this, not on ZeptoMailProvider."""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send_mfa_code_email(
        self,
        email: str,
        user_name: Optional[str],
        otp_code: str,
        expires_in_minutes: int,
    ) -> bool: ...
