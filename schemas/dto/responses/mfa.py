"""
Response DTOs for MFA code endpoints.

IssueCodeResponse           POST /mfa/codes  (202)
VerifyResponse              POST /mfa/codes/verify, POST /mfa/recovery-codes/verify  (200)
RecoveryCodesResponse       POST /mfa/recovery-codes  (201)
RecoveryCodeStatusResponse  GET /mfa/recovery-codes/{user_id}  (200)
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class IssueCodeResponse(BaseModel):
    """Response body for POST /mfa/codes. The code itself is never returned."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    method: str
    expires_in: int  # seconds


class VerifyResponse(BaseModel):
    """Outcome of a verification attempt; carries no failure reason."""

    model_config = ConfigDict(populate_by_name=True)

    verified: bool


class RecoveryCodesResponse(BaseModel):
    """Response body for POST /mfa/recovery-codes, the only time codes are shown."""

    model_config = ConfigDict(populate_by_name=True)

    codes: list[str]
    count: int


class RecoveryCodeStatusResponse(BaseModel):
    """Response body for GET /mfa/recovery-codes/{user_id}."""

    model_config = ConfigDict(populate_by_name=True)

    unused_count: int
    total_count: int
